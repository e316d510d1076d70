"""Custom exceptions for annodoc."""


class AnnodocError(Exception):
    """Base exception for annodoc operations."""


class RangeError(AnnodocError):
    """A position or range falls outside the current document bounds."""


class InvalidStepError(AnnodocError):
    """A transaction step is incompatible with the node types it touches."""


class ReadOnlyError(AnnodocError):
    """Mutation attempted while the session is in viewing mode."""


class NotFoundError(AnnodocError):
    """A referenced document, comment or suggestion does not exist."""


class PersistenceError(AnnodocError):
    """The external record store failed to load or save."""
