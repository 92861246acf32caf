# app/recommender/errors.py


class MatchingError(Exception):
    """Base class for every error raised by the matching engine."""


class InvalidArgument(MatchingError):
    pass


class NotFound(MatchingError):
    pass


class InsufficientData(MatchingError):
    """Neither a profile embedding nor a chat embedding is available."""


class BackendUnavailable(MatchingError):
    """Embedding or vector search failed. Safe to retry with backoff at the caller."""


class PersistenceFailure(MatchingError):
    """Storing the ranking failed. Callers should re-run matching from scratch."""


class EncodingError(MatchingError):
    pass


class ExplanationFailure(MatchingError):
    """Never leaves the explanation service; converted to the fallback text."""
