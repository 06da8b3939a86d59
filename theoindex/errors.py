"""Exception hierarchy for the index engine."""


class IndexEngineError(Exception):
    """Base class for all engine errors."""


class IndexNotFoundError(IndexEngineError, ValueError):
    """Raised when an index definition does not exist."""

    def __init__(self, index_id: str):
        super().__init__(f"Index '{index_id}' not found")
        self.index_id = index_id


class ConfigurationError(IndexEngineError, ValueError):
    """Raised when an index configuration is malformed or references unknown strategies."""


class ProviderError(IndexEngineError):
    """Raised when a quote or dividend provider call fails (timeout, HTTP error, ...)."""


class ProviderOutageError(ProviderError):
    """Raised when no constituent of an index could be priced for a date."""


class RebalanceWriteError(IndexEngineError):
    """Raised when the composition replace transaction fails and is rolled back."""
