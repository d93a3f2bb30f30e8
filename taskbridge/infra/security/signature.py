"""请求签名校验：基于 Ed25519 公钥验证 timestamp || body 的分离签名。"""

from __future__ import annotations

import logging

from nacl.exceptions import BadSignatureError, CryptoError
from nacl.signing import VerifyKey

logger = logging.getLogger(__name__)


class SignatureVerifier:
    """平台请求签名校验器，公钥在构造时解析一次。"""

    def __init__(self, public_key_hex: str) -> None:
        self._verify_key: VerifyKey | None = None
        try:
            self._verify_key = VerifyKey(bytes.fromhex(public_key_hex.strip()))
        except (CryptoError, ValueError, TypeError) as exc:
            # 公钥不可用时不阻断启动，所有校验统一判定失败。
            logger.error(
                "signature public key unusable",
                extra={
                    "event": "signature.key.invalid",
                    "error_type": type(exc).__name__,
                    "error": str(exc),
                },
            )

    def verify(self, body: bytes, signature_hex: str, timestamp: str) -> bool:
        """必须基于未解析的原始请求体校验，JSON 重新序列化后无法保证逐字节一致。"""
        if self._verify_key is None:
            return False
        try:
            message = timestamp.encode("utf-8") + body
            self._verify_key.verify(message, bytes.fromhex(signature_hex))
        except (BadSignatureError, CryptoError, ValueError, TypeError):
            return False
        return True
