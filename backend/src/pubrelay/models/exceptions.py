from pubrelay.utilities import CLOSE_INVALID


class ProtocolViolation(Exception):
    ''' A frame the connection cannot accept in its current role.

    Carries the WebSocket close code and the human readable reason sent to the peer.
    '''

    def __init__(self, reason: str, code: int = CLOSE_INVALID):
        super().__init__(reason)
        self.reason = reason
        self.code = code


class Lagged(Exception):
    ''' The subscription fell behind the hub and lost envelopes.'''

    def __init__(self, skipped: int):
        super().__init__(f"Lagged by {skipped} messages")
        self.skipped = skipped


class HubClosed(Exception):
    pass
