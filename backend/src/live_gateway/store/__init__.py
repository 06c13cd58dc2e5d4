from .topic_store import SubscribedTopicStore
