from .cache import CachedMessage, TopicCache
from .registry import SubscriptionRegistry
from .session import ClientSession, DeliveryLoop, LoopState
