from dataclasses import dataclass
from typing import Any, Dict, Optional

from blockchain import CertificateRecord, CertificateRegistry

VALID = "valid"
REVOKED = "revoked"
UNKNOWN = "unknown"

MESSAGES = {
    VALID: "Certificate is valid and verified",
    REVOKED: "Certificate exists but has been revoked",
    UNKNOWN: "Certificate not found",
}


@dataclass(frozen=True)
class VerificationResult:
    record: Optional[CertificateRecord] = None

    @property
    def exists(self) -> bool:
        return self.record is not None

    @property
    def is_valid(self) -> bool:
        return self.exists and self.record.is_valid

    @property
    def status(self) -> str:
        if not self.exists:
            return UNKNOWN
        return VALID if self.record.is_valid else REVOKED

    @property
    def message(self) -> str:
        return MESSAGES[self.status]

    def to_dict(self) -> Dict[str, Any]:
        return {
            "success": True,
            "verified": self.exists,
            "status": self.status,
            "data": self.record.to_dict() if self.exists else None,
            "message": self.message,
        }


def verify_hash(registry: CertificateRegistry, content_hash: str) -> VerificationResult:
    return VerificationResult(registry.lookup_by_hash(content_hash))


def verify_id(registry: CertificateRegistry, certificate_id: int) -> VerificationResult:
    return VerificationResult(registry.lookup_by_id(certificate_id))
