from typing import Any, Optional
from pydantic import BaseModel

class ClientFrame(BaseModel):
    event: str  # subscribeToTopic|unsubscribeFromTopic|disconnect
    data: Any = None
    topic: Optional[str] = None

    def topic_arg(self) -> Any:
        return self.topic if self.topic is not None else self.data

class TopicRequest(BaseModel):
    topic: str

class PublishRequest(BaseModel):
    topic: str
    message: Any
    retain: bool = False
