"""
带外认证返回节点的核心逻辑实现。
包括加载服务方证书公钥、验证响应签名、解析签名信封中的认证状态等。
"""

import base64
import re

from cryptography import x509
from cryptography.exceptions import InvalidSignature, UnsupportedAlgorithm
from cryptography.hazmat.primitives import hashes
from cryptography.hazmat.primitives.asymmetric import padding, rsa
from cryptography.hazmat.primitives.asymmetric.types import PublicKeyTypes
from loguru import logger
from pydantic import ValidationError

from .schemas import Envelope, InnerPayload

# 签名验证失败时返回的哨兵状态，下游映射为拒绝
INVALID_STATUS = "invalid"
ACCEPT_STATUS = "accept"


class CertificateLoadError(ValueError):
    """无法从证书配置字符串中加载公钥。"""


class EnvelopeError(ValueError):
    """信封或载荷不符合协议约定。"""


class MalformedEnvelopeError(EnvelopeError):
    pass


class MalformedPayloadError(EnvelopeError):
    pass


def _load_certificate_from_input(certificate_input: str) -> x509.Certificate:
    """
    尝试从输入中解析证书，兼容以下多种输入形式：
    1) 直接的 PEM 文本（包含 -----BEGIN CERTIFICATE-----）
    2) 包含证书 PEM 的一段文本（从中提取首个证书块）
    3) Base64 编码的 PEM 文本
    4) DER 二进制（以 Base64 字符串形式传入）

    :param certificate_input: 证书输入字符串
    :return: 解析得到的 x509.Certificate 对象
    :raises CertificateLoadError: 当无法识别/解析证书时
    """
    text = certificate_input.strip()
    if not text:
        raise CertificateLoadError("证书配置为空")

    if "-----BEGIN CERTIFICATE-----" in text:
        pem_blocks = re.findall(
            r"-----BEGIN CERTIFICATE-----[\s\S]*?-----END CERTIFICATE-----",
            text,
        )
        if pem_blocks:
            try:
                return x509.load_pem_x509_certificate(pem_blocks[0].encode("utf-8"))
            except ValueError:
                pass

    try:
        decoded = base64.b64decode(text)
    except ValueError:
        raise CertificateLoadError("无法从输入中解析证书")

    try:
        return x509.load_pem_x509_certificate(decoded)
    except ValueError:
        pass
    try:
        return x509.load_der_x509_certificate(decoded)
    except ValueError:
        raise CertificateLoadError("无法从输入中解析证书")


def load_public_key(cert_input: str) -> PublicKeyTypes:
    """
    从证书配置字符串中取出公钥。节点构造时调用一次，之后只读共享。
    :param cert_input: 证书内容（PEM 文本 或 Base64 编码的 PEM/DER）。
    :return: 证书中的公钥。
    :raises CertificateLoadError: 证书无法解析或不含可用公钥。
    """
    cert = _load_certificate_from_input(cert_input)
    try:
        return cert.public_key()
    except (ValueError, UnsupportedAlgorithm) as e:
        raise CertificateLoadError(f"证书中的公钥不可用: {e}")


def _b64decode(text: str) -> bytes:
    """严格校验字符集的 Base64 解码，末尾的 = 填充可省略。"""
    return base64.b64decode(text + "=" * (-len(text) % 4), validate=True)


def select_hash_algorithm(algorithm: str | None) -> hashes.HashAlgorithm:
    """
    仅字面值 "sha256" 选择 SHA-256，其余任意值（包括缺省）回退为 SHA-1。
    回退行为需与现有响应方保持线格式兼容。
    """
    if algorithm == "sha256":
        return hashes.SHA256()
    logger.debug(f"签名算法 {algorithm!r} 非 sha256，回退为 SHA-1")
    return hashes.SHA1()


def verify_signature(
    payload: bytes,
    signature_b64: str,
    algorithm: str | None,
    public_key: PublicKeyTypes,
) -> bool:
    """
    使用服务方公钥验证 RSA PKCS#1 v1.5 分离签名。
    :param payload: 被签名的原始字节，即收到的 Base64 载荷字符串本身。
    :param signature_b64: Base64 编码的签名。
    :param algorithm: 算法提示，见 select_hash_algorithm。
    :param public_key: 服务方公钥。
    :return: 验证成功返回 True，其余任何情况返回 False。
    """
    if not isinstance(public_key, rsa.RSAPublicKey):
        return False
    try:
        signature = _b64decode(signature_b64)
        public_key.verify(
            signature,
            payload,
            padding.PKCS1v15(),
            select_hash_algorithm(algorithm),
        )
        return True
    except (ValueError, TypeError, InvalidSignature, UnsupportedAlgorithm):
        return False


def decode_status(entity_body: str | bytes, public_key: PublicKeyTypes) -> str:
    """
    解析签名信封并返回其中的认证状态。
    :param entity_body: 已成功返回的响应实体。
    :param public_key: 服务方公钥。
    :return: authStatus 字段的值；签名无效时返回 "invalid"。
    :raises MalformedEnvelopeError: 实体不是 JSON 对象或缺少 payload/signature/algorithm。
    :raises MalformedPayloadError: payload 解码后不是包含 authStatus 的 JSON 对象。
    """
    try:
        envelope = Envelope.model_validate_json(entity_body)
    except ValidationError as e:
        raise MalformedEnvelopeError(f"信封格式无效: {e.error_count()} 处错误")

    # 签名覆盖的是收到的 Base64 字符串，而不是解码后的内容
    if not verify_signature(
        envelope.payload.encode("utf-8"),
        envelope.signature,
        envelope.algorithm,
        public_key,
    ):
        logger.error("响应签名无效")
        return INVALID_STATUS

    try:
        raw = _b64decode(envelope.payload)
        inner = InnerPayload.model_validate_json(raw)
    except ValueError as e:
        raise MalformedPayloadError(f"载荷格式无效: {type(e).__name__}")
    return inner.auth_status
