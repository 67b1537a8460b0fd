from verification import REVOKED, UNKNOWN, VALID, verify_hash, verify_id

from conftest import OWNER


def test_unknown_certificate(registry):
    result = verify_hash(registry, "missing")
    assert (result.exists, result.is_valid, result.status) == (False, False, UNKNOWN)
    assert result.to_dict() == {
        "success": True,
        "verified": False,
        "status": UNKNOWN,
        "data": None,
        "message": "Certificate not found",
    }


def test_valid_then_revoked(registry):
    registry.issue(OWNER, "Alice", "Contest2024", "abc")

    result = verify_hash(registry, "abc")
    assert (result.exists, result.is_valid, result.status) == (True, True, VALID)
    assert result.message == "Certificate is valid and verified"
    assert result.to_dict()["data"]["certificateId"] == 1

    registry.revoke(OWNER, 1)

    result = verify_id(registry, 1)
    assert (result.exists, result.is_valid, result.status) == (True, False, REVOKED)
    assert result.message == "Certificate exists but has been revoked"
    assert result.to_dict()["data"]["isValid"] is False


def test_id_zero_is_never_a_certificate(registry):
    registry.issue(OWNER, "Alice", "Contest2024", "abc")
    assert verify_id(registry, 0).status == UNKNOWN
    assert verify_id(registry, 2).status == UNKNOWN
