class BrokerError(Exception):
    """Base exception for message broker errors."""


class MessageDecodeError(BrokerError):
    """Raised when a message body is not a valid job payload."""
