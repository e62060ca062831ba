import uuid

import pytest
from cryptography.hazmat.primitives import serialization
from cryptography.hazmat.primitives.asymmetric import rsa

from apicommon import signature


def _key_pair():
    private = rsa.generate_private_key(public_exponent=65537, key_size=2048)
    private_der = private.private_bytes(
        serialization.Encoding.DER,
        serialization.PrivateFormat.TraditionalOpenSSL,
        serialization.NoEncryption(),
    )
    public_der = private.public_key().public_bytes(
        serialization.Encoding.DER,
        serialization.PublicFormat.SubjectPublicKeyInfo,
    )
    return private_der, public_der


@pytest.fixture(scope="module")
def keys():
    return _key_pair()


SUBJECT = {
    "company": "eolink",
    "edition": "ultimate(旗舰版）",
    "begin": "2023-01-01",
    "end": "2024-12-31",
    "cluster": 5,
    "control": 3,
    "node": 0,
    "code": "xxff",
}


def test_sign_encode_verify_round_trip(keys):
    private_der, public_der = keys
    key = str(uuid.uuid4())
    subject_sign, sign = signature.sign(private_der, key, SUBJECT)
    data = signature.encode_sign("apinto", subject_sign, sign)
    subject, ok = signature.verify("apinto", data, public_der)
    assert ok is True
    assert subject["id"] == key
    assert subject["hash"] == "5"
    assert subject["edition"] == "ultimate(旗舰版）"
    assert subject["cluster"] == 5


def test_tampered_subject_fails(keys):
    private_der, public_der = keys
    subject_sign, sign = signature.sign(private_der, "key", SUBJECT)
    subject_sign["cluster"] = 50
    data = signature.encode_sign("apinto", subject_sign, sign)
    assert signature.verify("apinto", data, public_der) == (None, False)


def test_other_secret_fails(keys):
    private_der, public_der = keys
    subject_sign, sign = signature.sign(private_der, "key", SUBJECT)
    data = signature.encode_sign("apinto", subject_sign, sign)
    assert signature.verify("other", data, public_der) == (None, False)


def test_other_public_key_fails(keys):
    private_der, _ = keys
    _, other_public = _key_pair()
    subject_sign, sign = signature.sign(private_der, "key", SUBJECT)
    data = signature.encode_sign("apinto", subject_sign, sign)
    assert signature.verify("apinto", data, other_public) == (None, False)


def test_invalid_private_key_raises():
    with pytest.raises(ValueError):
        signature.sign(b"not a key", "key", SUBJECT)


def test_encode_public_key_format():
    assert signature.encode_public_key("apinto", b"abc") == (
        b"-----BEGIN APINTO PUBLIC KEY-----\nYWJj\n-----END APINTO PUBLIC KEY-----\n"
    )


def test_public_key_round_trip_with_wrapped_lines():
    payload = bytes(range(100))
    encoded = signature.encode_public_key("apinto", payload)
    body = encoded.splitlines()[1:-1]
    assert all(len(line) <= 64 for line in body)
    assert len(body) > 1
    assert signature.decode_public("apinto", encoded) == payload


def test_decode_public_rejects_garbage():
    with pytest.raises(signature.InvalidCertificateError):
        signature.decode_public("apinto", b"garbage")


def test_decode_pem_rejects_garbage():
    with pytest.raises(signature.InvalidCertificateError):
        signature.decode_pem("apinto", b"garbage")


def test_decode_pem_signature_only():
    data = signature.encode_sign("apinto", {"a": "b"}, b"sig")
    only_signature = data[data.index(b"-----BEGIN APINTO SIGNATURE"):]
    subject, sign = signature.decode_pem("apinto", only_signature)
    assert subject is None
    assert sign == b"sig"


def test_decode_pem_round_trip():
    data = signature.encode_sign("apinto", {"name": "demo", "count": 2}, b"\x00\x01")
    assert signature.decode_pem("apinto", data) == ({"name": "demo", "count": 2}, b"\x00\x01")


def test_subject_encode_orders_by_key_and_escapes():
    assert signature.subject_encode({"b": "x y", "a": 1, "c": True}) == b"1&x+y&true"


def test_format_for_sign_adds_fields_without_mutating():
    original = {"company": "eolink"}
    formatted = signature.format_for_sign("key-1", original)
    assert original == {"company": "eolink"}
    assert formatted["id"] == "key-1"
    assert formatted["hash"] == "5"
    assert formatted["company"] == "eolink"
    assert "T" in formatted["sign_time"]