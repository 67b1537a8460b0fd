import io

import pytest

from crypto_utils import (
    decrypt,
    encrypt,
    file_sha256,
    get_cipher,
    identity_for_key,
    sha256_bytes,
    sha256_hash,
)

EMPTY_SHA256 = "e3b0c44298fc1c149afbf4c8996fb92427ae41e4649b934ca495991b7852b855"
ABC_SHA256 = "ba7816bf8f01cfea414140de5dae2223b00361a396177a9cb410ff61f20015ad"


def test_known_vectors():
    assert sha256_bytes(b"") == EMPTY_SHA256
    assert sha256_bytes(b"abc") == ABC_SHA256
    assert sha256_hash("abc") == ABC_SHA256


def test_digest_is_lowercase_hex():
    digest = sha256_bytes(b"\x00\xff" * 100)
    assert len(digest) == 64
    assert digest == digest.lower()


def test_sha256_bytes_rejects_text():
    with pytest.raises(TypeError):
        sha256_bytes("abc")


def test_file_sha256_matches_and_rewinds(monkeypatch):
    monkeypatch.setattr("crypto_utils.CHUNK_SIZE", 7)
    data = b"certificate bytes " * 50
    stream = io.BytesIO(data)

    assert file_sha256(stream) == sha256_bytes(data)
    assert stream.read() == data


def test_identity_for_key():
    assert identity_for_key("") == ""
    assert identity_for_key("secret") == sha256_hash("secret")


def test_cipher_round_trip():
    cipher = get_cipher(b"master")
    token = encrypt("Hackathon Authority", cipher)
    assert token != b"Hackathon Authority"
    assert decrypt(token, cipher) == "Hackathon Authority"
