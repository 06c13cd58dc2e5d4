class GatewayError(Exception):
    """Base class for gateway errors."""


class UserInputError(GatewayError):
    """Malformed client request, e.g. a missing topic. Reported to that client only."""


class BrokerTransientError(GatewayError):
    """A broker call failed because of connectivity. The action is retried on reconnect."""

    def __init__(self, message: str, topic=None):
        super().__init__(message)
        self.topic = topic


class InvariantViolation(GatewayError):
    """Programming error, e.g. a reference count going below zero."""
