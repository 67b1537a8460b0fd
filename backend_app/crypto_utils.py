import hashlib
import base64
from typing import BinaryIO, Union

from cryptography.fernet import Fernet

CHUNK_SIZE = 1024 * 1024

# ---------- HASHING ----------
def sha256_hash(data: str) -> str:
    return hashlib.sha256(data.encode("utf-8")).hexdigest()

def sha256_bytes(data: Union[bytes, bytearray]) -> str:
    """Lowercase hex SHA-256 of raw artifact bytes."""
    if not isinstance(data, (bytes, bytearray)):
        raise TypeError(f"sha256_bytes expects bytes, got {type(data).__name__}")
    return hashlib.sha256(data).hexdigest()

def file_sha256(stream: BinaryIO) -> str:
    """Hash a binary stream in chunks, then rewind it so it can be saved."""
    h = hashlib.sha256()
    for chunk in iter(lambda: stream.read(CHUNK_SIZE), b""):
        h.update(chunk)
    stream.seek(0)
    return h.hexdigest()

# ---------- OWNER IDENTITY ----------
def identity_for_key(issuer_key: str) -> str:
    """Identity presented by a caller holding ``issuer_key``; empty keys map to ''."""
    if not issuer_key:
        return ""
    return sha256_hash(issuer_key)

# ---------- SYMMETRIC ENCRYPTION ----------
def get_cipher(master_key: bytes) -> Fernet:
    key = base64.urlsafe_b64encode(hashlib.sha256(master_key).digest())
    return Fernet(key)

def encrypt(text: str, cipher: Fernet) -> bytes:
    return cipher.encrypt(text.encode("utf-8"))

def decrypt(token: bytes, cipher: Fernet) -> str:
    return cipher.decrypt(token).decode("utf-8")
