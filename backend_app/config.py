"""
Configuration for the certificate verification API.

Settings come from the environment (a local ``.env`` is loaded first) and
are exposed as module constants, plus ``flask_config()`` for the app.
"""

import os
from pathlib import Path
from typing import Any, Dict, List

from dotenv import load_dotenv

load_dotenv()

ENV = os.getenv("CERTCHAIN_ENV", "dev")  # dev|prod

# ---------------- SECRETS ----------------
MASTER_KEY = os.getenv("MASTER_KEY", "")
ISSUER_SECRET = os.getenv("ISSUER_SECRET", "")
ISSUER_NAME = os.getenv("ISSUER_NAME", "Certificate Authority")

DEV_MASTER_KEY = "dev-master-key"
DEV_ISSUER_SECRET = "dev-issuer-secret"

# ---------------- STORAGE ----------------
DATABASE_URI = os.getenv("DATABASE_URI", "sqlite:///certificates.db")
REGISTRY_BACKEND = os.getenv("REGISTRY_BACKEND", "sql")  # sql|memory

UPLOAD_FOLDER = os.getenv(
    "UPLOAD_FOLDER", str(Path(__file__).resolve().parent / "uploads")
)
MAX_UPLOAD_BYTES = int(os.getenv("MAX_UPLOAD_BYTES", str(5 * 1024 * 1024)))
ALLOWED_EXTENSIONS = frozenset({"jpeg", "jpg", "png", "gif", "pdf"})

# ---------------- SERVER ----------------
PORT = int(os.getenv("PORT", "3000"))
LOG_LEVEL = os.getenv("LOG_LEVEL", "INFO")
LOG_JSON = os.getenv("LOG_JSON", "true").lower() in ("1", "true", "yes")


def is_production() -> bool:
    return ENV == "prod"


def missing_secrets() -> List[str]:
    return [name for name, value in (("MASTER_KEY", MASTER_KEY), ("ISSUER_SECRET", ISSUER_SECRET)) if not value]


def flask_config() -> Dict[str, Any]:
    """Flask config mapping; dev falls back to fixed secrets, prod refuses to start without them."""
    missing = missing_secrets()
    if missing and is_production():
        raise RuntimeError(f"Missing required configuration: {', '.join(missing)}")

    return {
        "SQLALCHEMY_DATABASE_URI": DATABASE_URI,
        "SQLALCHEMY_TRACK_MODIFICATIONS": False,
        "MAX_CONTENT_LENGTH": MAX_UPLOAD_BYTES,
        "UPLOAD_FOLDER": UPLOAD_FOLDER,
        "ALLOWED_EXTENSIONS": ALLOWED_EXTENSIONS,
        "REGISTRY_BACKEND": REGISTRY_BACKEND,
        "MASTER_KEY": MASTER_KEY or DEV_MASTER_KEY,
        "ISSUER_SECRET": ISSUER_SECRET or DEV_ISSUER_SECRET,
        "ISSUER_NAME": ISSUER_NAME,
    }
