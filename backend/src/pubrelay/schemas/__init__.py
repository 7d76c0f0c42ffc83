from .schemas import PublishedMessage, SubscriptionFilter, Envelope, PublishAccepted, HubStats
