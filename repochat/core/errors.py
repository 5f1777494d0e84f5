"""Error taxonomy shared by indexing, retrieval, providers and streaming."""


class RepoChatError(Exception):
    """Base class for all repochat errors."""


class ConfigurationError(RepoChatError):
    """Missing or invalid credentials/configuration detected at initialize()."""


class NotFoundError(RepoChatError, KeyError):
    """Unknown document id or provider name."""

    def __str__(self) -> str:
        # KeyError quotes its argument; keep the plain message.
        return str(self.args[0]) if self.args else ""


class EmptyCorpusError(RepoChatError):
    """Retrieval was attempted against a corpus with zero documents."""


class ExternalServiceError(RepoChatError):
    """Embedding, vector index or generation backend failed."""


class CancellationError(RepoChatError):
    """Caller went away mid-stream. Never surfaced as a failure fragment."""


class AlreadyRegisteredError(RepoChatError):
    """A provider with the same name is already registered."""


class NoActiveProviderError(RepoChatError):
    """The registry has no active provider."""
