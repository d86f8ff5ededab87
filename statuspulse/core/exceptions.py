"""
Exception hierarchy.

StatusPulseError
├── FeedFetchError          transient HTTP / network failure
│   └── FeedPayloadError    feed answered but the payload is unusable
├── DeliveryFailed          a notification could not be delivered
├── InvalidIntervalError    poll interval outside the allowed range
└── UnknownPollerError      poll task name not recognised
"""


class StatusPulseError(Exception):
    """Base class for all errors raised by this package."""
    pass


class FeedFetchError(StatusPulseError):
    """Raised when an external feed cannot be fetched."""

    def __init__(self, url: str, message: str):
        self.url = url
        super().__init__(f"{url}: {message}")


class FeedPayloadError(FeedFetchError):
    """Raised when a feed returns JSON that does not match the expected shape.

    Treated exactly like a fetch failure: the pass aborts with no writes.
    """
    pass


class InvalidIntervalError(StatusPulseError):
    """Raised when a poll interval update is out of bounds."""

    def __init__(self, seconds: int, minimum: int, maximum: int):
        self.seconds = seconds
        self.minimum = minimum
        self.maximum = maximum
        super().__init__(f"Interval must be between {minimum} and {maximum} seconds (got {seconds})")


class UnknownPollerError(StatusPulseError):
    """Raised when a poller name does not match any poll task."""
    pass


class DeliveryFailed(StatusPulseError):
    """Raised by a delivery channel when a message could not be delivered.

    The ledger entry is kept; delivery is at-most-once.
    """

    def __init__(self, recipient_key: str, message: str):
        self.recipient_key = recipient_key
        super().__init__(f"delivery to {recipient_key} failed: {message}")
