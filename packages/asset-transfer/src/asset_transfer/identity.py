# SPDX-License-Identifier: Apache-2.0
# Copyright (C) 2024-2026 The Birthmark Standard Foundation

"""
X.509 identities and request signing.

An identity is the certificate/private key pair issued by the certificate
authority for one enrollment ID, tagged with the MSP it belongs to. The
same ECDSA P-256 key signs CA admin requests and gateway submissions.
"""

import base64
import json
from dataclasses import dataclass
from typing import Optional

from cryptography import x509
from cryptography.x509.oid import NameOID
from cryptography.hazmat.primitives import hashes, serialization
from cryptography.hazmat.primitives.asymmetric import ec
from cryptography.hazmat.primitives.asymmetric.utils import (
    decode_dss_signature,
    encode_dss_signature,
)
from cryptography.exceptions import InvalidSignature

# Order of the P-256 group, used for low-S normalisation
P256_ORDER = 0xFFFFFFFF00000000FFFFFFFFFFFFFFFFBCE6FAADA7179E84F3B9CAC2FC632551
P256_HALF_ORDER = P256_ORDER >> 1

X509_IDENTITY_TYPE = "X.509"


@dataclass
class X509Identity:
    """Credentials stored in the wallet under a label."""
    msp_id: str
    certificate: str  # PEM
    private_key: str  # PEM (PKCS8)
    type: str = X509_IDENTITY_TYPE
    version: int = 1

    def to_dict(self) -> dict:
        """Serialize in the wallet file layout."""
        return {
            "credentials": {
                "certificate": self.certificate,
                "privateKey": self.private_key,
            },
            "mspId": self.msp_id,
            "type": self.type,
            "version": self.version,
        }

    def to_json(self) -> str:
        return json.dumps(self.to_dict())

    @classmethod
    def from_dict(cls, data: dict) -> "X509Identity":
        """
        Create identity from a wallet entry.

        Raises:
            KeyError: If a required field is missing
            ValueError: If the identity type is not X.509
        """
        identity_type = data.get("type", X509_IDENTITY_TYPE)
        if identity_type != X509_IDENTITY_TYPE:
            raise ValueError(f"Unsupported identity type: {identity_type}")

        credentials = data["credentials"]
        return cls(
            msp_id=data["mspId"],
            certificate=credentials["certificate"],
            private_key=credentials["privateKey"],
            type=identity_type,
            version=data.get("version", 1),
        )

    def load_private_key(self) -> ec.EllipticCurvePrivateKey:
        return load_private_key_from_pem(self.private_key)

    def load_certificate(self) -> x509.Certificate:
        return x509.load_pem_x509_certificate(self.certificate.encode("utf-8"))

    def common_name(self) -> Optional[str]:
        """Enrollment ID carried in the certificate subject."""
        attrs = self.load_certificate().subject.get_attributes_for_oid(NameOID.COMMON_NAME)
        return attrs[0].value if attrs else None


def generate_key() -> ec.EllipticCurvePrivateKey:
    """Generate a new ECDSA P-256 private key."""
    return ec.generate_private_key(ec.SECP256R1())


def load_private_key_from_pem(pem_data: str | bytes) -> ec.EllipticCurvePrivateKey:
    """
    Load ECDSA P-256 private key from PEM format.

    Raises:
        ValueError: If PEM data is invalid or not ECDSA
    """
    if isinstance(pem_data, str):
        pem_data = pem_data.encode("utf-8")

    private_key = serialization.load_pem_private_key(pem_data, password=None)

    if not isinstance(private_key, ec.EllipticCurvePrivateKey):
        raise ValueError("Private key is not ECDSA")

    return private_key


def private_key_to_pem_string(key: ec.EllipticCurvePrivateKey) -> str:
    """Convert private key to unencrypted PKCS8 PEM string."""
    return key.private_bytes(
        encoding=serialization.Encoding.PEM,
        format=serialization.PrivateFormat.PKCS8,
        encryption_algorithm=serialization.NoEncryption(),
    ).decode("utf-8")


def create_csr(enrollment_id: str, private_key: ec.EllipticCurvePrivateKey) -> str:
    """
    Build a PEM certificate signing request for an enrollment.

    The CA overrides everything in the subject except the common name,
    which must match the enrollment ID.
    """
    csr = (
        x509.CertificateSigningRequestBuilder()
        .subject_name(x509.Name([
            x509.NameAttribute(NameOID.COMMON_NAME, enrollment_id),
        ]))
        .sign(private_key, hashes.SHA256())
    )
    return csr.public_bytes(serialization.Encoding.PEM).decode("utf-8")


def sign(private_key: ec.EllipticCurvePrivateKey, data: bytes) -> bytes:
    """
    Sign data with ECDSA P-256 + SHA-256.

    Returns:
        DER-encoded signature with S in the lower half of the curve order.
        Fabric peers and the CA reject the equivalent high-S form.
    """
    signature = private_key.sign(data, ec.ECDSA(hashes.SHA256()))
    r, s = decode_dss_signature(signature)
    if s > P256_HALF_ORDER:
        s = P256_ORDER - s
    return encode_dss_signature(r, s)


def verify_signature(
    data: bytes,
    signature: bytes,
    public_key: ec.EllipticCurvePublicKey,
) -> bool:
    """Verify an ECDSA signature (used by tests and the test CA)."""
    try:
        public_key.verify(signature, data, ec.ECDSA(hashes.SHA256()))
        return True
    except InvalidSignature:
        return False


def _b64(data: bytes) -> str:
    return base64.b64encode(data).decode("ascii")


def create_auth_token(
    identity: X509Identity,
    body: bytes,
    method: str,
    path: str,
) -> str:
    """
    Build a Fabric CA style authorization token.

    Format: ``b64(cert) + "." + b64(signature)`` where the signature covers
    ``method.b64(path).b64(body).b64(cert)``.

    Args:
        identity: Signing identity (its certificate is embedded in the token)
        body: Exact request body bytes (empty for GET)
        method: HTTP method, upper case
        path: Request path including the API prefix, e.g. /api/v1/register

    Returns:
        Token for the Authorization header
    """
    cert_b64 = _b64(identity.certificate.encode("utf-8"))
    message = ".".join([method.upper(), _b64(path.encode("utf-8")), _b64(body), cert_b64])
    signature = sign(identity.load_private_key(), message.encode("utf-8"))
    return f"{cert_b64}.{_b64(signature)}"
