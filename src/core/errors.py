"""Engine error taxonomy.

Store-facing operations raise these instead of collaborator-specific
exceptions, so callers never need to inspect Firestore or Twilio failures.
Pure scoring and geo functions never raise them.
"""


class EngineError(Exception):
    """Base class for all engine errors."""


class SourceUnavailable(EngineError):
    """A collaborator read or write failed (retryable by the caller)."""


class Unauthorized(EngineError):
    """The actor lacks rights over the mutation target."""


class NotFound(EngineError):
    """The referenced entity does not exist."""


class AlertNotActive(EngineError):
    """The alert is no longer accepting responses."""


class InvalidInput(EngineError):
    """Malformed coordinate, out-of-range weight, unknown enum value, etc."""


class RequestCancelled(EngineError):
    """The caller went away before the request finished."""
