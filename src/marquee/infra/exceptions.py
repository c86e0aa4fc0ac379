"""
Custom exceptions for Marquee.

Errors fall into four families: parse/validation errors exclude a schedule or
media item, transient errors keep the previous good state and retry on the
next cycle, playback errors are recovered inside the owning region, and
contract errors are raised at construction time.
"""


class MarqueeError(Exception):
    """Base exception for all Marquee errors."""

    pass


class ValidationError(MarqueeError):
    """Raised when validation fails."""

    pass


class RecurrenceParseError(ValidationError):
    """Raised when a recurrence expression cannot be parsed."""

    def __init__(self, expression: object, reason: str) -> None:
        self.expression = expression
        self.reason = reason
        super().__init__(f"Invalid recurrence expression {expression!r}: {reason}")


class ConfigurationFormatError(ValidationError):
    """Raised when a configuration document does not match the expected shape."""

    pass


class MediaValidationError(ValidationError):
    """Raised when a media descriptor is missing required fields."""

    pass


class TransientError(MarqueeError):
    """Raised for I/O failures that are retried on the next cycle."""

    pass


class ConfigurationFetchError(TransientError):
    """Raised when the configuration provider cannot deliver a document."""

    pass


class MediaLoadError(TransientError):
    """Raised when a media unit cannot create or load its visual element."""

    pass


class PlaybackError(MarqueeError):
    """Raised when a visual element refuses to play."""

    pass


class AutoplayRejectedError(PlaybackError):
    """Raised by a video element when the platform blocks autoplay."""

    pass


class ContractError(MarqueeError):
    """Raised when a component is constructed with missing collaborators."""

    pass
