"""Exception hierarchy for the update engine."""

from typing import Optional


class SwitchDexError(Exception):
    """Base class for all engine errors."""


class SourceError(SwitchDexError):
    """A source adapter could not produce a result."""

    def __init__(self, source: str, message: str, status_code: Optional[int] = None):
        super().__init__(f"{source}: {message}")
        self.source = source
        self.status_code = status_code


class RateLimitedError(SourceError):
    """The upstream asked us to slow down (403 with rate-limit signal, or 429)."""


class NotFoundError(SourceError):
    """The upstream has nothing for this entity (HTTP 404)."""


class ParseError(SourceError):
    """A response was received but no version could be extracted."""


class PersistenceError(SwitchDexError):
    """Writing authoritative state to disk failed."""


class OwnershipError(SwitchDexError):
    """A tenant tried to modify an entity it does not own."""


class DuplicateEntityError(SwitchDexError):
    """The entity is already tracked."""


class UnknownEntityError(SwitchDexError):
    """No tracked entity with the given identifier."""


class InvalidIntervalError(SwitchDexError):
    """A scan interval outside the accepted range was requested."""
