"""Shared exception classes for agent_fabric."""


class FabricError(Exception):
    """Base exception for agent_fabric errors."""


class SourceError(FabricError):
    """Raised when a source string cannot be classified at all."""


class OriginNotFoundError(FabricError):
    """Raised when a repository, package, URL or local path doesn't exist."""


class NetworkError(FabricError):
    """Raised when a fetch fails after exhausting retries."""


class PathSecurityViolation(FabricError):
    """Raised when an archive entry would land outside the staging directory."""


class ValidationError(FabricError):
    """Raised when a discovered item fails validation and cannot be installed."""

    def __init__(self, message: str, errors: list[str] | None = None):
        super().__init__(message)
        self.errors = errors or []


class AlreadyExistsError(FabricError):
    """Raised when an install target already exists and force is off."""


class NotFoundError(FabricError):
    """Raised when a named resource is not in the state store."""


class NoHistoryError(NotFoundError):
    """Raised when a rollback is requested for a resource without history."""


class LinkSourceMissingError(FabricError):
    """Raised when link mode is requested but the staged source is gone."""


class UnknownConsumerError(FabricError):
    """Raised when a consumer id is not registered."""


class ConsumerNotSupportedError(FabricError):
    """Raised when a consumer doesn't declare a directory for a resource kind."""


class HandlerNotFoundError(FabricError):
    """Raised when no handler is registered for a resource kind."""


class HandlerRegistrationError(FabricError):
    """Raised when an object registered as a handler doesn't fit the contract."""


class SchemaVersionMismatch(FabricError):
    """Raised when the state file was written with a different schema version."""

    def __init__(self, found: object, expected: int):
        super().__init__(
            f"State file schema version {found!r} does not match expected version {expected}. "
            "Refusing to load without an explicit migration."
        )
        self.found = found
        self.expected = expected


class StateFileError(FabricError):
    """Raised when the state file cannot be read or parsed."""


class ConfigNotFoundError(FabricError):
    """Raised when agent-fabric.toml is not found."""


class ConfigParseError(FabricError):
    """Raised when agent-fabric.toml cannot be parsed."""


class ConfigValidationError(FabricError):
    """Raised when agent-fabric.toml contains invalid configuration."""


class ArchiveError(FabricError):
    """Raised when a downloaded archive cannot be opened."""


class IncompatibleFormatError(FabricError):
    """Raised when a link would expose a file in a format the consumer can't read."""
