"""
Certificate hash registry.

The registry plays the part of the on-chain contract: a mapping from
sequential certificate ids to records, a unique index from content hash to
id, and a single owner identity allowed to issue and revoke. Storage is
delegated to a ledger (in-memory or SQL) so the same rules hold whichever
backend the service runs with.
"""

import logging
import threading
from contextlib import contextmanager
from dataclasses import dataclass, replace
from datetime import datetime, timezone
from typing import Any, Callable, Dict, List, Optional

from sqlalchemy import func
from sqlalchemy.exc import IntegrityError, SQLAlchemyError

from database import db, CertificateEntry, utcnow
from errors import (
    AlreadyRevokedError,
    BackendError,
    DuplicateHashError,
    NotFoundError,
    UnauthorizedError,
    ValidationError,
)

logger = logging.getLogger(__name__)

NOT_FOUND_ID = 0


@dataclass(frozen=True)
class CertificateRecord:
    id: int
    participant_name: str
    event_name: str
    content_hash: str
    issued_at: datetime
    is_valid: bool = True

    def to_dict(self) -> Dict[str, Any]:
        return {
            "certificateId": self.id,
            "participantName": self.participant_name,
            "eventName": self.event_name,
            "certificateHash": self.content_hash,
            "timestamp": self.issued_at.isoformat(),
            "isValid": self.is_valid,
        }


# ---------------- EVENTS ----------------
@dataclass(frozen=True)
class CertificateIssued:
    certificate_id: int
    participant_name: str
    event_name: str
    certificate_hash: str


@dataclass(frozen=True)
class CertificateRevoked:
    certificate_id: int


Observer = Callable[[Any], None]


# ---------------- ACCESS GUARD ----------------
def is_owner(caller: str, owner: str) -> bool:
    """Exact-match identity check, no normalization."""
    return isinstance(caller, str) and caller == owner


def _is_positive_id(value) -> bool:
    return isinstance(value, int) and not isinstance(value, bool) and value > NOT_FOUND_ID


# ---------------- LEDGERS ----------------
class MemoryLedger:
    """Process-lifetime storage backed by two dicts and a counter."""

    name = "memory"

    def __init__(self):
        self.records: Dict[int, CertificateRecord] = {}
        self.hash_index: Dict[str, int] = {}
        self._next_id = 1

    def next_id(self) -> int:
        return self._next_id

    def get(self, certificate_id: int) -> Optional[CertificateRecord]:
        return self.records.get(certificate_id)

    def id_for_hash(self, content_hash: str) -> Optional[int]:
        return self.hash_index.get(content_hash)

    def append(self, record: CertificateRecord) -> None:
        # record first: a reader that sees the index entry must find the record
        self.records[record.id] = record
        self.hash_index[record.content_hash] = record.id
        self._next_id = record.id + 1

    def mark_revoked(self, certificate_id: int) -> None:
        self.records[certificate_id] = replace(self.records[certificate_id], is_valid=False)


@contextmanager
def _backend_call(action: str):
    try:
        yield
    except SQLAlchemyError as exc:
        db.session.rollback()
        logger.error("Registry backend failure while %s: %s", action, exc)
        raise BackendError(f"Registry backend failure while {action}") from exc


class SqlLedger:
    """Durable storage in the ``certificates`` table.

    Must be used inside a Flask application context. Records are never
    deleted, so ``max(id) + 1`` keeps ids unique across restarts.
    """

    name = "sql"

    def next_id(self) -> int:
        with _backend_call("reading the certificate counter"):
            highest = db.session.query(func.max(CertificateEntry.id)).scalar()
        return (highest or 0) + 1

    def get(self, certificate_id: int) -> Optional[CertificateRecord]:
        with _backend_call("reading a certificate"):
            entry = db.session.get(CertificateEntry, certificate_id)
        return _entry_to_record(entry) if entry else None

    def id_for_hash(self, content_hash: str) -> Optional[int]:
        with _backend_call("reading the hash index"):
            return db.session.query(CertificateEntry.id).filter_by(
                content_hash=content_hash
            ).scalar()

    def append(self, record: CertificateRecord) -> None:
        entry = CertificateEntry(
            id=record.id,
            participant_name=record.participant_name,
            event_name=record.event_name,
            content_hash=record.content_hash,
            issued_at=record.issued_at,
            is_valid=record.is_valid,
        )
        with _backend_call("storing a certificate"):
            try:
                db.session.add(entry)
                db.session.commit()
            except IntegrityError as exc:
                db.session.rollback()
                if self.id_for_hash(record.content_hash) is not None:
                    raise DuplicateHashError(
                        "Certificate with this hash already exists",
                        {"certificateHash": record.content_hash},
                    ) from exc
                # another writer on the same database took this id first
                logger.error("Certificate id %s was allocated concurrently", record.id)
                raise BackendError(
                    "Certificate id was taken by a concurrent writer",
                    {"certificateId": record.id},
                ) from exc

    def mark_revoked(self, certificate_id: int) -> None:
        with _backend_call("revoking a certificate"):
            entry = db.session.get(CertificateEntry, certificate_id)
            entry.is_valid = False
            db.session.commit()


def _entry_to_record(entry: CertificateEntry) -> CertificateRecord:
    issued_at = entry.issued_at
    if issued_at.tzinfo is None:
        issued_at = issued_at.replace(tzinfo=timezone.utc)
    return CertificateRecord(
        id=entry.id,
        participant_name=entry.participant_name,
        event_name=entry.event_name,
        content_hash=entry.content_hash,
        issued_at=issued_at,
        is_valid=bool(entry.is_valid),
    )


# ---------------- REGISTRY ----------------
class CertificateRegistry:
    """Owner-guarded registry of certificate hashes.

    ``issue`` and ``revoke`` run inside one lock so id allocation and the
    hash uniqueness check cannot interleave. Lookups never raise for
    unknown hashes or ids; they return ``None``.
    """

    def __init__(self, owner: str, ledger=None, clock: Callable[[], datetime] = utcnow):
        if not owner:
            raise ValueError("registry owner identity must be non-empty")
        self._owner = owner
        self._ledger = ledger if ledger is not None else MemoryLedger()
        self._clock = clock
        self._lock = threading.RLock()
        self._observers: List[Observer] = []

    @property
    def owner(self) -> str:
        return self._owner

    @property
    def backend(self) -> str:
        return self._ledger.name

    def subscribe(self, observer: Observer) -> Observer:
        self._observers.append(observer)
        return observer

    def issue(self, caller: str, participant_name: str, event_name: str, content_hash: str) -> int:
        self.require_owner(caller, "issue")

        missing = [
            field
            for field, value in (
                ("participantName", participant_name),
                ("eventName", event_name),
                ("certificateHash", content_hash),
            )
            if not isinstance(value, str) or not value
        ]
        if missing:
            raise ValidationError(
                f"{', '.join(missing)} cannot be empty", {"fields": missing}
            )

        with self._lock:
            if self._ledger.id_for_hash(content_hash) is not None:
                raise DuplicateHashError(
                    "Certificate with this hash already exists",
                    {"certificateHash": content_hash},
                )
            certificate_id = self._ledger.next_id()
            self._ledger.append(
                CertificateRecord(
                    id=certificate_id,
                    participant_name=participant_name,
                    event_name=event_name,
                    content_hash=content_hash,
                    issued_at=self._clock(),
                )
            )

        self._emit(CertificateIssued(certificate_id, participant_name, event_name, content_hash))
        return certificate_id

    def revoke(self, caller: str, certificate_id: int) -> CertificateRecord:
        self.require_owner(caller, "revoke")

        with self._lock:
            record = self.lookup_by_id(certificate_id)
            if record is None:
                raise NotFoundError(
                    "Certificate does not exist", {"certificateId": certificate_id}
                )
            if not record.is_valid:
                raise AlreadyRevokedError(
                    "Certificate is already revoked", {"certificateId": certificate_id}
                )
            self._ledger.mark_revoked(certificate_id)

        self._emit(CertificateRevoked(certificate_id))
        return replace(record, is_valid=False)

    def lookup_by_hash(self, content_hash: str) -> Optional[CertificateRecord]:
        if not isinstance(content_hash, str) or not content_hash:
            return None
        certificate_id = self._ledger.id_for_hash(content_hash)
        if certificate_id is None:
            return None
        return self._ledger.get(certificate_id)

    def lookup_by_id(self, certificate_id: int) -> Optional[CertificateRecord]:
        if not _is_positive_id(certificate_id):
            return None
        if certificate_id >= self._ledger.next_id():
            return None
        return self._ledger.get(certificate_id)

    def total(self) -> int:
        return self._ledger.next_id() - 1

    def require_owner(self, caller: str, action: str) -> None:
        if not is_owner(caller, self._owner):
            logger.warning("Rejected %s from a caller that is not the registry owner", action)
            raise UnauthorizedError(f"Only the registry owner can {action} certificates")

    def _emit(self, event) -> None:
        for observer in list(self._observers):
            try:
                observer(event)
            except Exception:
                # the mutation is already committed; observers cannot undo it
                logger.exception("Observer %r failed on %s", observer, type(event).__name__)
