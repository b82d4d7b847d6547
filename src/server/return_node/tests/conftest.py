"""
返回节点测试共用的密钥、证书与信封构造工具。
"""

import base64
import json
from datetime import datetime, timedelta, timezone

import pytest
from cryptography import x509
from cryptography.hazmat.primitives import hashes, serialization
from cryptography.hazmat.primitives.asymmetric import padding, rsa
from cryptography.x509.oid import NameOID


def _self_signed_cert(private_key, common_name: str = "oob-responder") -> x509.Certificate:
    subject = x509.Name([x509.NameAttribute(NameOID.COMMON_NAME, common_name)])
    now = datetime.now(timezone.utc)
    return (
        x509.CertificateBuilder()
        .subject_name(subject)
        .issuer_name(subject)
        .public_key(private_key.public_key())
        .serial_number(x509.random_serial_number())
        .not_valid_before(now - timedelta(minutes=1))
        .not_valid_after(now + timedelta(days=30))
        .sign(private_key=private_key, algorithm=hashes.SHA256())
    )


@pytest.fixture(scope="session")
def rsa_private_key():
    return rsa.generate_private_key(public_exponent=65537, key_size=2048)


@pytest.fixture(scope="session")
def rsa_public_key(rsa_private_key):
    return rsa_private_key.public_key()


@pytest.fixture(scope="session")
def service_cert_pem(rsa_private_key) -> str:
    """服务方证书的 PEM 文本。"""
    cert = _self_signed_cert(rsa_private_key)
    return cert.public_bytes(serialization.Encoding.PEM).decode("utf-8")


@pytest.fixture(scope="session")
def service_cert_der_b64(rsa_private_key) -> str:
    cert = _self_signed_cert(rsa_private_key)
    return base64.b64encode(cert.public_bytes(serialization.Encoding.DER)).decode("utf-8")


def sign_payload(private_key, payload_b64: str, hash_algorithm) -> str:
    sig = private_key.sign(payload_b64.encode("utf-8"), padding.PKCS1v15(), hash_algorithm)
    return base64.b64encode(sig).decode("utf-8")


def encode_payload(inner: dict) -> str:
    return base64.b64encode(json.dumps(inner).encode("utf-8")).decode("utf-8")


def make_envelope(
    private_key,
    auth_status: str = "accept",
    algorithm: str = "sha256",
    hash_algorithm=None,
) -> str:
    """构造一个完整的签名信封 JSON 字符串。"""
    payload = encode_payload({"authStatus": auth_status})
    if hash_algorithm is None:
        hash_algorithm = hashes.SHA256() if algorithm == "sha256" else hashes.SHA1()
    signature = sign_payload(private_key, payload, hash_algorithm)
    return json.dumps({"payload": payload, "signature": signature, "algorithm": algorithm})


@pytest.fixture
def envelope_factory(rsa_private_key):
    """返回一个以服务方私钥签名的信封构造函数。"""

    def _factory(auth_status: str = "accept", algorithm: str = "sha256", hash_algorithm=None) -> str:
        return make_envelope(rsa_private_key, auth_status, algorithm, hash_algorithm)

    return _factory
