from .schemas import ClientFrame, PublishRequest, TopicRequest
