from pydantic import BaseModel, ConfigDict, Field


class PublishedMessage(BaseModel):
    ''' One message sent by a publisher. `data` is relayed verbatim.'''

    model_config = ConfigDict(frozen=True)

    topic: str
    data: str


class SubscriptionFilter(BaseModel):
    ''' Which publisher and topic a subscriber wants; exact match only.'''

    # wire name is "publisher"
    model_config = ConfigDict(frozen=True)

    publisher_name: str = Field(alias="publisher")
    topic: str

    def matches(self, envelope: "Envelope") -> bool:
        return (
            envelope.publisher_name == self.publisher_name
            and envelope.message.topic == self.topic
        )


class Envelope(BaseModel):
    ''' A published message tagged with the name of its publisher.'''

    model_config = ConfigDict(frozen=True)

    publisher_name: str
    message: PublishedMessage


class PublishAccepted(BaseModel):
    status: str = "accepted"


class HubStats(BaseModel):
    subscribers: int
    published: int
    capacity: int
