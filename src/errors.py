"""
Pustaka Exceptions

Provider clients never raise past their boundary (they degrade to empty or
fallback values); these exceptions cover configuration and the callers that
decide an ingestion has failed.
"""


class PustakaError(Exception):
    """Base class for all Pustaka errors."""

    pass


class ConfigurationError(PustakaError):
    """Raised when required settings are missing or inconsistent."""

    pass


class PDFParseError(PustakaError):
    """Raised when a PDF cannot be opened or read."""

    pass


class IngestionError(PustakaError):
    """Raised when a document produces no ingestible content."""

    pass
