from typing import Any, Dict, Optional


class RegistryError(Exception):
    """Base class for every failure the certificate registry reports."""

    error = "Registry error"

    def __init__(self, message: str, details: Optional[Dict[str, Any]] = None):
        super().__init__(message)
        self.message = message
        self.details = details or {}

    def to_dict(self) -> Dict[str, Any]:
        payload = {"success": False, "error": self.error, "message": self.message}
        if self.details:
            payload["details"] = self.details
        return payload


class ValidationError(RegistryError):
    error = "Missing required fields"


class MissingFileError(ValidationError):
    error = "No file uploaded"


class UnsupportedFileError(ValidationError):
    error = "Unsupported file type"


class DuplicateHashError(RegistryError):
    error = "Certificate already exists"


class NotFoundError(RegistryError):
    error = "Certificate not found"


class AlreadyRevokedError(RegistryError):
    error = "Certificate already revoked"


class UnauthorizedError(RegistryError):
    error = "Unauthorized issuer"


class BackendError(RegistryError):
    """Storage or network collaborator failed; callers may retry."""

    error = "Registry backend unavailable"
