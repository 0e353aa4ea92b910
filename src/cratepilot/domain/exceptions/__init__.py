"""Domain exceptions."""

from typing import Any


class DomainException(Exception):
    """Base exception for all domain exceptions."""

    # Hey future me, we store message as an attribute so code can inspect it without parsing str(exception).
    # This is your base class - DON'T raise it directly! Always use a specific subclass so callers can
    # catch precisely.
    def __init__(self, message: str, *args: Any) -> None:
        super().__init__(message, *args)
        self.message = message


class EntityNotFoundException(DomainException):
    """Raised when an entity is not found."""

    def __init__(self, entity_type: str, entity_id: Any) -> None:
        super().__init__(f"{entity_type} with id {entity_id} not found")
        self.entity_type = entity_type
        self.entity_id = entity_id


class DuplicateEntityException(DomainException):
    """Raised when trying to create a duplicate entity."""

    # Listen, the importer checks exists() before add(), but two importers racing on the same external
    # id can both pass that check. The tracks table primary key catches the loser and the repository
    # turns the IntegrityError into this. The importer reports it as "already exists", same as a
    # pre-insert hit.
    def __init__(self, entity_type: str, entity_id: Any) -> None:
        super().__init__(f"{entity_type} with id {entity_id} already exists")
        self.entity_type = entity_type
        self.entity_id = entity_id


class ConfigurationError(DomainException):
    """Application misconfiguration.

    Raised when required configuration is missing or invalid, or when the
    persistent store an importer depends on cannot be reached.

    Example:
        raise ConfigurationError("API base URL must not be empty")
        raise ConfigurationError("Spotify client credentials not configured")
    """

    pass


class RequestError(DomainException):
    """Request against a source API failed.

    Raised for non-success HTTP responses and for transport failures
    (status_code is None then). Import entry points let this propagate,
    except multi-ID import which records it per identifier.

    Example:
        raise RequestError(404, "Not Found", "https://api.spotify.com/v1/tracks/abc")
    """

    def __init__(self, status_code: int | None, reason: str, url: str = "") -> None:
        if status_code is None:
            message = f"API request failed: {reason}"
        else:
            message = f"API request failed: {status_code} {reason}"
        super().__init__(message)
        self.status_code = status_code
        self.reason = reason
        self.url = url

    @property
    def is_rate_limited(self) -> bool:
        """Check if the source rejected the request with 429."""
        return self.status_code == 429


__all__ = [
    "ConfigurationError",
    "DomainException",
    "DuplicateEntityException",
    "EntityNotFoundException",
    "RequestError",
]
