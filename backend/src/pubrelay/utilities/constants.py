# ------------ Config ------------
HUB_CAPACITY = 16             # envelopes buffered on the hub before slow subscribers lag
AUTH_TIMEOUT = 5.0            # seconds to wait on the external token oracle
# --------------------------------

# ------------ Close codes ------------
CLOSE_INVALID = 1007          # invalid frame payload data
CLOSE_INTERNAL_ERROR = 1011   # server could not complete the request
# -------------------------------------

# ------------ Close reasons ------------
INVALID_PASSWORD = "Invalid password"
MALFORMED_COMMAND = "Malformed command"
INVALID_COMMAND = "Invalid command"
INVALID_MESSAGE = "Invalid message"
AUTH_UNAVAILABLE = "Could not verify credentials"
# ---------------------------------------

NOT_FOUND_TEXT = "nothing to see here"

# control frame payload is 125 bytes, two go to the code
MAX_CLOSE_REASON_BYTES = 123
