import io

import pytest

from app import create_app
from blockchain import CertificateRegistry
from crypto_utils import identity_for_key

ISSUER_KEY = "test-issuer-secret"
OWNER = identity_for_key(ISSUER_KEY)


def make_app(tmp_path, backend="sql", **overrides):
    settings = {
        "TESTING": True,
        "SQLALCHEMY_DATABASE_URI": "sqlite:///:memory:",
        "REGISTRY_BACKEND": backend,
        "UPLOAD_FOLDER": str(tmp_path / "uploads"),
        "MASTER_KEY": "test-master-key",
        "ISSUER_SECRET": ISSUER_KEY,
        "ISSUER_NAME": "Test Authority",
        "MAX_CONTENT_LENGTH": 64 * 1024,
    }
    settings.update(overrides)
    return create_app(settings)


@pytest.fixture(params=["memory", "sql"])
def registry(request, tmp_path):
    if request.param == "memory":
        yield CertificateRegistry(OWNER)
        return
    app = make_app(tmp_path, "sql")
    with app.app_context():
        yield app.extensions["certificate_registry"]


@pytest.fixture(params=["sql", "memory"])
def app(request, tmp_path):
    return make_app(tmp_path, request.param)


@pytest.fixture
def client(app):
    return app.test_client()


def upload_form(content=b"%PDF-1.4 certificate for Alice", filename="certificate.pdf",
                mimetype="application/pdf", **fields):
    form = dict(fields)
    form["certificate"] = (io.BytesIO(content), filename, mimetype)
    return form
