from datetime import datetime, timezone

from flask_sqlalchemy import SQLAlchemy

db = SQLAlchemy()


def utcnow():
    return datetime.now(timezone.utc).replace(microsecond=0)


class Issuer(db.Model):
    __tablename__ = "issuers"

    id = db.Column(db.Integer, primary_key=True)
    encrypted_name = db.Column(db.LargeBinary, nullable=False)
    # sha256 of the issuer secret; this is the registry owner identity
    secret_hash = db.Column(db.String(64), nullable=False)


class CertificateEntry(db.Model):
    __tablename__ = "certificates"

    # assigned by the registry, never by the database
    id = db.Column(db.Integer, primary_key=True, autoincrement=False)

    participant_name = db.Column(db.String(255), nullable=False)
    event_name = db.Column(db.String(255), nullable=False)
    content_hash = db.Column(db.String(256), unique=True, index=True, nullable=False)

    issued_at = db.Column(db.DateTime, nullable=False, default=utcnow)
    is_valid = db.Column(db.Boolean, nullable=False, default=True)
