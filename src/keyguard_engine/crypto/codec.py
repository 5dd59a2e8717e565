"""
Symmetric transport encryption for device fingerprints.

Wire format: ``base64(iv) + ":" + base64(ciphertext)``
- AES-256-CBC with PKCS7 padding
- 16-byte IV drawn from os.urandom on every call
- plaintext is compact UTF-8 JSON

Key derivation methods:
- ``aes-256-cbc``: the project secret right-padded with ASCII "0" and cut to
  32 bytes. This is what deployed clients do; it is a fixed-width key, not a
  KDF, so short secrets produce weak keys.
- ``aes-256-cbc-hkdf``: HKDF-SHA256 over the secret. Same wire format;
  projects opt in per-project once their clients are updated.
"""

import base64
import binascii
import json
import os
from typing import Any

from cryptography.hazmat.primitives import hashes, padding
from cryptography.hazmat.primitives.ciphers import Cipher, algorithms, modes
from cryptography.hazmat.primitives.kdf.hkdf import HKDF

from keyguard_engine.common.exceptions import (
    DecryptionFailed,
    MalformedTransport,
    PayloadNotJSON,
)

KEY_LEN = 32
IV_LEN = 16
BLOCK_BITS = 128
SEPARATOR = ":"

METHOD_PADDED = "aes-256-cbc"
METHOD_HKDF = "aes-256-cbc-hkdf"
SUPPORTED_METHODS = (METHOD_PADDED, METHOD_HKDF)

HKDF_INFO = b"keyguard device-info v1"


def derive_key(secret: str, method: str = METHOD_PADDED) -> bytes:
    """Turn a project secret into a 32-byte AES key."""
    raw = secret.encode("utf-8")
    if method == METHOD_PADDED:
        return raw.ljust(KEY_LEN, b"0")[:KEY_LEN]
    if method == METHOD_HKDF:
        return HKDF(
            algorithm=hashes.SHA256(),
            length=KEY_LEN,
            salt=None,
            info=HKDF_INFO,
        ).derive(raw)
    raise ValueError(f"Unsupported encryption method: {method!r}")


def encrypt(payload: Any, secret: str, method: str = METHOD_PADDED) -> str:
    """Encrypt a JSON-serializable payload into the transport string."""
    key = derive_key(secret, method)
    plaintext = json.dumps(payload, separators=(",", ":"), ensure_ascii=False).encode("utf-8")

    padder = padding.PKCS7(BLOCK_BITS).padder()
    padded = padder.update(plaintext) + padder.finalize()

    iv = os.urandom(IV_LEN)
    encryptor = Cipher(algorithms.AES(key), modes.CBC(iv)).encryptor()
    ciphertext = encryptor.update(padded) + encryptor.finalize()

    return (
        base64.b64encode(iv).decode("ascii")
        + SEPARATOR
        + base64.b64encode(ciphertext).decode("ascii")
    )


def _split_transport(transport: str) -> tuple[bytes, bytes]:
    if not isinstance(transport, str) or transport.count(SEPARATOR) != 1:
        raise MalformedTransport()
    iv_b64, ct_b64 = transport.split(SEPARATOR)
    try:
        iv = base64.b64decode(iv_b64, validate=True)
        ciphertext = base64.b64decode(ct_b64, validate=True)
    except (binascii.Error, ValueError) as exc:
        raise MalformedTransport("Encrypted data is not valid base64") from exc
    return iv, ciphertext


def decrypt(transport: str, secret: str, method: str = METHOD_PADDED) -> Any:
    """Decrypt a transport string back into the original JSON payload.

    Raises:
        MalformedTransport: not exactly one separator, or invalid base64
        DecryptionFailed: the cipher rejects the iv/ciphertext/key combination
        PayloadNotJSON: the plaintext is not UTF-8 JSON
    """
    iv, ciphertext = _split_transport(transport)
    key = derive_key(secret, method)

    if len(iv) != IV_LEN or not ciphertext or len(ciphertext) % (BLOCK_BITS // 8):
        raise DecryptionFailed()

    decryptor = Cipher(algorithms.AES(key), modes.CBC(iv)).decryptor()
    padded = decryptor.update(ciphertext) + decryptor.finalize()
    unpadder = padding.PKCS7(BLOCK_BITS).unpadder()
    try:
        plaintext = unpadder.update(padded) + unpadder.finalize()
    except ValueError as exc:
        raise DecryptionFailed() from exc

    try:
        return json.loads(plaintext.decode("utf-8"))
    except (UnicodeDecodeError, json.JSONDecodeError, RecursionError) as exc:
        raise PayloadNotJSON() from exc
