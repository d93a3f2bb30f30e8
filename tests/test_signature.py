"""签名校验测试：有效签名通过，任意字节篡改与畸形输入一律拒绝。"""

from __future__ import annotations

from nacl.signing import SigningKey

from taskbridge.infra.security.signature import SignatureVerifier

_BODY = b'{"type":1,"id":"123"}'
_TIMESTAMP = "1700000000"


def _sign(key: SigningKey, body: bytes, timestamp: str) -> str:
    return key.sign(timestamp.encode("utf-8") + body).signature.hex()


def test_valid_signature_is_accepted() -> None:
    key = SigningKey.generate()
    verifier = SignatureVerifier(key.verify_key.encode().hex())

    assert verifier.verify(_BODY, _sign(key, _BODY, _TIMESTAMP), _TIMESTAMP) is True


def test_uppercase_hex_signature_is_accepted() -> None:
    key = SigningKey.generate()

    verifier = SignatureVerifier(key.verify_key.encode().hex().upper())

    assert verifier.verify(_BODY, _sign(key, _BODY, _TIMESTAMP).upper(), _TIMESTAMP) is True


def test_any_single_byte_body_mutation_is_rejected() -> None:
    """请求体任意位置改动一个字节都应校验失败。"""
    key = SigningKey.generate()
    verifier = SignatureVerifier(key.verify_key.encode().hex())
    signature = _sign(key, _BODY, _TIMESTAMP)

    for index in range(len(_BODY)):
        mutated = bytearray(_BODY)
        mutated[index] ^= 0x01
        assert verifier.verify(bytes(mutated), signature, _TIMESTAMP) is False


def test_timestamp_mutation_is_rejected() -> None:
    key = SigningKey.generate()
    verifier = SignatureVerifier(key.verify_key.encode().hex())
    signature = _sign(key, _BODY, _TIMESTAMP)

    assert verifier.verify(_BODY, signature, "1700000001") is False
    assert verifier.verify(_BODY, signature, "") is False


def test_signature_from_other_key_is_rejected() -> None:
    key = SigningKey.generate()
    other = SigningKey.generate()
    verifier = SignatureVerifier(key.verify_key.encode().hex())

    assert verifier.verify(_BODY, _sign(other, _BODY, _TIMESTAMP), _TIMESTAMP) is False


def test_malformed_signature_is_rejected_without_raising() -> None:
    key = SigningKey.generate()
    verifier = SignatureVerifier(key.verify_key.encode().hex())
    signature = _sign(key, _BODY, _TIMESTAMP)

    assert verifier.verify(_BODY, "zz" * 64, _TIMESTAMP) is False
    assert verifier.verify(_BODY, signature[:-2], _TIMESTAMP) is False
    assert verifier.verify(_BODY, "", _TIMESTAMP) is False


def test_unusable_public_key_rejects_everything() -> None:
    """公钥非法时构造不抛异常，所有校验判定失败。"""
    key = SigningKey.generate()
    signature = _sign(key, _BODY, _TIMESTAMP)

    assert SignatureVerifier("not-hex").verify(_BODY, signature, _TIMESTAMP) is False
    assert SignatureVerifier("abcd").verify(_BODY, signature, _TIMESTAMP) is False
    assert SignatureVerifier("").verify(_BODY, signature, _TIMESTAMP) is False
