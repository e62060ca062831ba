"""Signed subjects stored as PEM blocks: RSA PKCS#1 v1.5 signatures over sorted values."""

from __future__ import annotations

import base64
import binascii
import re
from datetime import datetime
from typing import Any, Mapping
from urllib.parse import quote_plus

import yaml
from cryptography.exceptions import InvalidSignature, UnsupportedAlgorithm
from cryptography.hazmat.primitives import hashes, serialization
from cryptography.hazmat.primitives.asymmetric import padding, rsa

# Numeric hash identifiers carried in signed subjects; 5 is SHA-256.
HASH = 5

_HASHES: dict[int, type[hashes.HashAlgorithm]] = {
    2: hashes.MD5,
    3: hashes.SHA1,
    4: hashes.SHA224,
    5: hashes.SHA256,
    6: hashes.SHA384,
    7: hashes.SHA512,
    10: hashes.SHA3_224,
    11: hashes.SHA3_256,
    12: hashes.SHA3_384,
    13: hashes.SHA3_512,
    14: hashes.SHA512_224,
    15: hashes.SHA512_256,
}

_BEGIN = re.compile(rb"-----BEGIN ([^\r\n]*?)-----[ \t]*\r?\n")
_INTEGER = re.compile(r"[+-]?[0-9]+")
_LINE = 64


class InvalidCertificateError(ValueError):
    """Raised when data does not hold well-formed PEM blocks."""


def _pem_encode(block_type: str, data: bytes) -> bytes:
    encoded = base64.b64encode(data)
    body = b"".join(encoded[i:i + _LINE] + b"\n" for i in range(0, len(encoded), _LINE))
    return (
        f"-----BEGIN {block_type}-----\n".encode("utf-8")
        + body
        + f"-----END {block_type}-----\n".encode("utf-8")
    )


def _pem_decode(data: bytes) -> tuple[str, bytes, bytes] | None:
    """The first block in ``data`` as (type, payload, rest), or None."""
    match = _BEGIN.search(data)
    if match is None:
        return None
    block_type = match.group(1)
    end_marker = b"-----END " + block_type + b"-----"
    end = data.find(end_marker, match.end())
    if end < 0:
        return None
    body = data[match.end():end]
    rest = data[end + len(end_marker):]
    newline = rest.find(b"\n")
    tail = rest if newline < 0 else rest[:newline]
    if tail.strip(b" \t\r"):
        return None
    rest = b"" if newline < 0 else rest[newline + 1:]
    lines = body.splitlines()
    if lines and b":" in lines[0]:
        while lines and lines[0].strip():
            lines.pop(0)
    try:
        payload = base64.b64decode(b"".join(line.strip() for line in lines), validate=True)
    except (binascii.Error, ValueError):
        return None
    return block_type.decode("utf-8", "replace"), payload, rest


def encode_sign(secret: str, subject: Mapping[str, Any], sign: bytes) -> bytes:
    """The subject as a YAML ``<SECRET> AUTHORITY`` block followed by the signature block."""
    data = yaml.safe_dump(dict(subject), allow_unicode=True).encode("utf-8")
    prefix = secret.upper()
    return _pem_encode(f"{prefix} AUTHORITY", data) + _pem_encode(f"{prefix} SIGNATURE", sign)


def encode_public_key(secret: str, public_key: bytes) -> bytes:
    return _pem_encode(f"{secret.upper()} PUBLIC KEY", public_key)


def decode_public(secret: str, data: bytes) -> bytes:
    """The payload of the first PEM block in ``data``."""
    block = _pem_decode(bytes(data))
    if block is None:
        raise InvalidCertificateError("invalid certificate")
    return block[1]


def decode_pem(secret: str, data: bytes) -> tuple[dict[str, Any] | None, bytes | None]:
    """The subject and signature held in ``data``; other block types are skipped."""
    authority_type = f"{secret.upper()} AUTHORITY"
    signature_type = f"{secret.upper()} SIGNATURE"
    subject: dict[str, Any] | None = None
    signature: bytes | None = None
    rest = bytes(data)
    while rest:
        block = _pem_decode(rest)
        if block is None:
            raise InvalidCertificateError("invalid certificate")
        block_type, payload, rest = block
        if block_type == signature_type:
            signature = payload
        elif block_type == authority_type:
            try:
                loaded = yaml.safe_load(payload)
            except yaml.YAMLError as exc:
                raise InvalidCertificateError(str(exc)) from exc
            if loaded is not None and not isinstance(loaded, dict):
                raise InvalidCertificateError("subject is not a mapping")
            subject = loaded
    return subject, signature


def _go_string(value: Any) -> str:
    if value is None:
        return "<nil>"
    if isinstance(value, bool):
        return "true" if value else "false"
    if isinstance(value, float):
        text = repr(value)
        return text[:-2] if text.endswith(".0") else text
    return str(value)


def subject_encode(subject: Mapping[str, Any]) -> bytes:
    """The query-escaped values of ``subject``, ordered by key and joined with ``&``."""
    values = (quote_plus(_go_string(v), safe="") for _, v in sorted(subject.items()))
    return "&".join(values).encode("utf-8")


def _sign_time() -> str:
    text = datetime.now().astimezone().isoformat(timespec="seconds")
    return text[:-6] + "Z" if text.endswith("+00:00") else text


def format_for_sign(key: str, subject: Mapping[str, Any]) -> dict[str, Any]:
    """A copy of ``subject`` with its id, hash identifier and signing time added."""
    formatted = dict(subject)
    formatted["id"] = key
    formatted["hash"] = str(HASH)
    formatted["sign_time"] = _sign_time()
    return formatted


def sign(private_key: bytes, key: str, subject: Mapping[str, Any]) -> tuple[dict[str, Any], bytes]:
    """Sign ``subject`` with a DER RSA private key; returns the signed subject and signature."""
    try:
        loaded = serialization.load_der_private_key(private_key, password=None)
    except (ValueError, TypeError, UnsupportedAlgorithm) as exc:
        raise ValueError(f"invalid private key: {exc}") from exc
    if not isinstance(loaded, rsa.RSAPrivateKey):
        raise ValueError("private key is not an RSA key")
    formatted = format_for_sign(key, subject)
    signature = loaded.sign(subject_encode(formatted), padding.PKCS1v15(), hashes.SHA256())
    return formatted, signature


def _read_hash(subject: Mapping[str, Any] | None) -> hashes.HashAlgorithm | None:
    if subject is None or "hash" not in subject:
        return None
    value = subject["hash"]
    text = value if isinstance(value, str) else _go_string(value)
    if not _INTEGER.fullmatch(text):
        return None
    algorithm = _HASHES.get(int(text))
    return algorithm() if algorithm is not None else None


def verify(secret: str, pem_data: bytes, public_key: bytes) -> tuple[dict[str, Any] | None, bool]:
    """The signed subject and True if its signature matches the DER public key."""
    try:
        loaded = serialization.load_der_public_key(public_key)
    except (ValueError, TypeError, UnsupportedAlgorithm):
        return None, False
    if not isinstance(loaded, rsa.RSAPublicKey):
        return None, False
    try:
        subject, signature = decode_pem(secret, pem_data)
    except InvalidCertificateError:
        return None, False
    algorithm = _read_hash(subject)
    if algorithm is None or subject is None or signature is None:
        return None, False
    try:
        loaded.verify(signature, subject_encode(subject), padding.PKCS1v15(), algorithm)
    except InvalidSignature:
        return None, False
    return subject, True