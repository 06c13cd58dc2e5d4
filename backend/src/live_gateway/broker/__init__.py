from .adapter import BrokerIngestAdapter
from .connection import BrokerConnection, PahoConnection
