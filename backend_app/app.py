import logging
from datetime import datetime, timezone

from flask import (
    Blueprint,
    Flask,
    current_app,
    jsonify,
    request,
    send_file,
    send_from_directory,
    url_for,
)
from flask_cors import CORS
from werkzeug.exceptions import HTTPException, RequestEntityTooLarge

import config
from blockchain import (
    CertificateIssued,
    CertificateRegistry,
    CertificateRevoked,
    MemoryLedger,
    SqlLedger,
)
from crypto_utils import decrypt, encrypt, file_sha256, get_cipher, identity_for_key, sha256_hash
from database import db, Issuer
from documents import render_qr_png, render_receipt_pdf
from errors import (
    AlreadyRevokedError,
    BackendError,
    DuplicateHashError,
    NotFoundError,
    RegistryError,
    UnauthorizedError,
    ValidationError,
)
from logging_config import configure_logging, get_request_id, set_request_id
from uploads import StagedUpload, check_upload
from verification import verify_hash, verify_id

logger = logging.getLogger(__name__)

ERROR_STATUS = {
    ValidationError: 400,
    UnauthorizedError: 403,
    NotFoundError: 404,
    DuplicateHashError: 409,
    AlreadyRevokedError: 409,
    BackendError: 503,
}


def status_for(exc):
    for cls in type(exc).__mro__:
        if cls in ERROR_STATUS:
            return ERROR_STATUS[cls]
    return 500


site = Blueprint("site", __name__)
certificates = Blueprint("certificates", __name__, url_prefix="/api/certificates")


# ---------------- ISSUER INIT ----------------
def ensure_issuer_exists(cipher, name, secret):
    issuer = Issuer.query.first()
    if not issuer:
        issuer = Issuer(
            encrypted_name=encrypt(name, cipher),
            secret_hash=sha256_hash(secret)
        )
        db.session.add(issuer)
        db.session.commit()
    elif issuer.secret_hash != sha256_hash(secret):
        # the stored issuer row wins; rotating the secret needs a database change
        logger.warning(
            "Configured ISSUER_SECRET does not match the stored issuer; "
            "the previously stored secret remains the registry owner"
        )
    return issuer


def build_ledger(backend):
    if backend == "sql":
        return SqlLedger()
    if backend == "memory":
        return MemoryLedger()
    raise ValueError(f"Unknown registry backend: {backend!r}")


def log_registry_event(event):
    if isinstance(event, CertificateIssued):
        logger.info(
            "Certificate %s issued: participant=%s event=%s hash=%s",
            event.certificate_id, event.participant_name, event.event_name, event.certificate_hash
        )
    elif isinstance(event, CertificateRevoked):
        logger.info("Certificate %s revoked", event.certificate_id)


# ---------------- HELPERS ----------------
def get_registry() -> CertificateRegistry:
    return current_app.extensions["certificate_registry"]


def issuer_name():
    issuer = Issuer.query.first()
    return decrypt(issuer.encrypted_name, current_app.extensions["issuer_cipher"])


def caller_identity():
    key = request.headers.get("X-Issuer-Key") or request.form.get("issuer_key", "")
    return identity_for_key(key.strip())


def parse_certificate_id(raw):
    if not raw or not raw.isascii() or not raw.isdigit():
        raise ValidationError("Valid certificate ID parameter is required", {"certificateId": raw})
    return int(raw)


def verification_url(content_hash):
    return url_for("certificates.verify_by_hash", content_hash=content_hash, _external=True)


def now_iso():
    return datetime.now(timezone.utc).isoformat()


# ---------------- ROOT ----------------
@site.route("/")
def home():
    return jsonify({
        "message": "Welcome to Certificate Verification API",
        "endpoints": {
            "health": "/health",
            "issue": "POST /api/certificates/issue",
            "revoke": "POST /api/certificates/revoke/:id",
            "verify": "GET /api/certificates/verify/:hash",
            "verifyById": "GET /api/certificates/verify-id/:id",
            "verifyFile": "POST /api/certificates/verify-file",
            "list": "GET /api/certificates/list",
            "qr": "GET /api/certificates/qr/:hash",
            "receipt": "GET /api/certificates/receipt/:id",
        }
    })


@site.route("/health")
def health():
    return jsonify({
        "status": "OK",
        "message": "Certificate Verification API is running",
        "timestamp": now_iso(),
        "backend": get_registry().backend
    })


@site.route("/uploads/<path:name>")
def uploaded_file(name):
    return send_from_directory(current_app.config["UPLOAD_FOLDER"], name)


# ---------------- ISSUE ----------------
@certificates.route("/issue", methods=["POST"])
def issue():
    registry = get_registry()
    caller = caller_identity()
    registry.require_owner(caller, "issue")

    participant_name = request.form.get("participantName", "").strip()
    event_name = request.form.get("eventName", "").strip()

    if not participant_name or not event_name:
        raise ValidationError("participantName and eventName are required")

    upload = request.files.get("certificate")
    check_upload(upload, current_app.config["ALLOWED_EXTENSIONS"])
    certificate_hash = file_sha256(upload.stream)

    logger.info(
        "Certificate issue request: participant=%s event=%s file=%s hash=%s",
        participant_name, event_name, upload.filename, certificate_hash
    )

    # written before the registry call so a storage failure records nothing
    try:
        staged = StagedUpload(upload, current_app.config["UPLOAD_FOLDER"])
    except OSError as exc:
        logger.error("Could not store upload %s: %s", upload.filename, exc)
        raise BackendError("Could not store the uploaded file") from exc

    try:
        certificate_id = registry.issue(caller, participant_name, event_name, certificate_hash)
    except RegistryError:
        staged.discard()
        raise

    data = registry.lookup_by_id(certificate_id).to_dict()
    data["verificationUrl"] = verification_url(certificate_hash)
    try:
        data.update(staged.commit())
    except OSError as exc:
        logger.error("Certificate %s issued but its file was not kept: %s", certificate_id, exc)
        data["storageWarning"] = "Certificate issued but the uploaded file could not be kept"

    return jsonify({
        "success": True,
        "message": "Certificate issued successfully",
        "data": data
    })


# ---------------- REVOKE ----------------
@certificates.route("/revoke/<certificate_id>", methods=["POST"])
def revoke(certificate_id):
    registry = get_registry()
    caller = caller_identity()
    registry.require_owner(caller, "revoke")

    record = registry.revoke(caller, parse_certificate_id(certificate_id))
    return jsonify({
        "success": True,
        "message": "Certificate revoked",
        "data": {"certificateId": record.id, "isValid": record.is_valid}
    })


# ---------------- VERIFY ----------------
@certificates.route("/verify/<content_hash>")
def verify_by_hash(content_hash):
    logger.info("Verifying certificate with hash %s", content_hash)
    return jsonify(verify_hash(get_registry(), content_hash).to_dict())


@certificates.route("/verify-id/<certificate_id>")
def verify_by_id(certificate_id):
    certificate_id = parse_certificate_id(certificate_id)
    logger.info("Verifying certificate with id %s", certificate_id)
    return jsonify(verify_id(get_registry(), certificate_id).to_dict())


@certificates.route("/verify-file", methods=["POST"])
def verify_file():
    upload = request.files.get("certificate")
    check_upload(upload, current_app.config["ALLOWED_EXTENSIONS"])
    certificate_hash = file_sha256(upload.stream)

    payload = verify_hash(get_registry(), certificate_hash).to_dict()
    payload["certificateHash"] = certificate_hash
    return jsonify(payload)


# ---------------- STATS ----------------
@certificates.route("/list")
def stats():
    registry = get_registry()
    return jsonify({
        "success": True,
        "data": {
            "totalCertificates": registry.total(),
            "issuer": issuer_name(),
            "backend": registry.backend
        }
    })


@certificates.route("/health")
def registry_health():
    registry = get_registry()
    try:
        total = registry.total()
    except BackendError as exc:
        return jsonify({
            "success": False,
            "error": "Registry connection failed",
            "message": exc.message
        }), 503

    return jsonify({
        "success": True,
        "registry": {
            "connected": True,
            "backend": registry.backend,
            "issuer": issuer_name(),
            "totalCertificates": total
        },
        "timestamp": now_iso()
    })


# ---------------- QR ----------------
@certificates.route("/qr/<content_hash>")
def qr_code(content_hash):
    if get_registry().lookup_by_hash(content_hash) is None:
        raise NotFoundError("Certificate not found", {"certificateHash": content_hash})
    return send_file(render_qr_png(verification_url(content_hash)), mimetype="image/png")


# ---------------- PDF ----------------
@certificates.route("/receipt/<certificate_id>")
def receipt(certificate_id):
    certificate_id = parse_certificate_id(certificate_id)
    record = get_registry().lookup_by_id(certificate_id)
    if record is None:
        raise NotFoundError("Certificate not found", {"certificateId": certificate_id})

    buffer = render_receipt_pdf(record, issuer_name(), verification_url(record.content_hash))
    return send_file(buffer, as_attachment=True,
                     download_name=f"certificate-{record.id}.pdf",
                     mimetype="application/pdf")


# ---------------- ERRORS ----------------
def register_error_handlers(app):

    @app.errorhandler(RegistryError)
    def handle_registry_error(exc):
        status = status_for(exc)
        if status >= 500:
            logger.error("%s: %s", exc.error, exc.message)
        return jsonify(exc.to_dict()), status

    @app.errorhandler(404)
    def handle_not_found(exc):
        return jsonify({
            "error": "Endpoint not found",
            "message": f"{request.method} {request.path} not found"
        }), 404

    @app.errorhandler(RequestEntityTooLarge)
    def handle_too_large(exc):
        limit = current_app.config["MAX_CONTENT_LENGTH"]
        return jsonify({
            "error": "File too large",
            "message": f"Uploads are limited to {limit} bytes"
        }), 413

    @app.errorhandler(HTTPException)
    def handle_http_error(exc):
        return jsonify({"error": exc.name, "message": exc.description}), exc.code

    @app.errorhandler(Exception)
    def handle_unexpected(exc):
        logger.exception("Unhandled error")
        return jsonify({
            "error": "Internal server error",
            "message": "An unexpected error occurred"
        }), 500


# ---------------- FLASK SETUP ----------------
def create_app(overrides=None):
    app = Flask(__name__)
    app.config.update(config.flask_config())
    if overrides:
        app.config.update(overrides)

    CORS(app)
    db.init_app(app)

    cipher = get_cipher(app.config["MASTER_KEY"].encode())
    with app.app_context():
        db.create_all()
        owner = ensure_issuer_exists(cipher, app.config["ISSUER_NAME"], app.config["ISSUER_SECRET"]).secret_hash

    registry = CertificateRegistry(owner, build_ledger(app.config["REGISTRY_BACKEND"]))
    registry.subscribe(log_registry_event)

    app.extensions["issuer_cipher"] = cipher
    app.extensions["certificate_registry"] = registry

    @app.before_request
    def bind_request_id():
        set_request_id(request.headers.get("X-Request-ID"))

    @app.after_request
    def echo_request_id(response):
        response.headers["X-Request-ID"] = get_request_id()
        return response

    app.register_blueprint(site)
    app.register_blueprint(certificates)
    register_error_handlers(app)
    return app


def main():
    configure_logging(config.LOG_LEVEL, config.LOG_JSON)
    app = create_app()
    logger.info("Certificate Verification API running on port %s (backend=%s)",
                config.PORT, app.config["REGISTRY_BACKEND"])
    app.run(port=config.PORT, debug=False)


if __name__ == "__main__":
    main()
