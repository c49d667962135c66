"""
Turn whatever the caller has into the fingerprint string stored in
public_keys.fingerprint.

The stored form is the classic OpenSSH MD5 fingerprint: MD5 over the
decoded key blob, lowercase hex, colon separated
("43:51:43:a1:b5:fc:8b:b7:0a:3a:a9:b1:0f:66:73:a8").
"""

from __future__ import annotations

import base64
import binascii
import hashlib


def md5_fingerprint(blob: bytes) -> str:
    digest = hashlib.md5(blob).hexdigest()
    return ":".join(digest[i:i + 2] for i in range(0, len(digest), 2))


def sha256_fingerprint(blob: bytes) -> str:
    """OpenSSH 6.8+ style: SHA256:<unpadded base64>."""
    digest = base64.b64encode(hashlib.sha256(blob).digest()).decode("ascii")
    return "SHA256:" + digest.rstrip("=")


def key_blob(key_line: str) -> bytes:
    """
    Decode the base64 blob of an OpenSSH public key line.

    Accepts "type base64 [comment]" with or without a leading options
    clause, as long as the blob's embedded type matches the type field.
    """
    parts = key_line.split()
    for i in range(len(parts) - 1):
        try:
            blob = base64.b64decode(parts[i + 1], validate=True)
        except (binascii.Error, ValueError):
            continue
        if _blob_type(blob) == parts[i]:
            return blob
    raise ValueError("Not an OpenSSH public key line")


def _blob_type(blob):
    # The blob starts with a uint32 length-prefixed key type string.
    if len(blob) < 4:
        return None
    size = int.from_bytes(blob[:4], "big")
    if size > len(blob) - 4:
        return None
    try:
        return blob[4:4 + size].decode("ascii")
    except UnicodeDecodeError:
        return None


def resolve_fingerprint(source) -> str:
    """
    Printable fingerprint for source.

    source may be:
      - an object with a fingerprint() method (its result is used as-is)
      - bytes: a raw key blob, fingerprinted with MD5
      - str: an OpenSSH public key line (fingerprinted with MD5), or an
        already computed fingerprint (passed through untouched)

    A string is only read as a key line when it holds a blob whose
    embedded type matches its type field; anything else is opaque.
    """
    if hasattr(source, "fingerprint") and callable(source.fingerprint):
        return str(source.fingerprint())
    if isinstance(source, (bytes, bytearray)):
        return md5_fingerprint(bytes(source))
    if isinstance(source, str):
        try:
            return md5_fingerprint(key_blob(source))
        except ValueError:
            return source
    raise TypeError(f"Cannot fingerprint {type(source).__name__}")
