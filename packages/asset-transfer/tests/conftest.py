"""Pytest configuration and fixtures."""

import base64
import json
from datetime import datetime, timedelta, timezone
from pathlib import Path

import httpx
import pytest
from cryptography import x509
from cryptography.x509.oid import NameOID
from cryptography.hazmat.primitives import hashes, serialization
from cryptography.hazmat.primitives.asymmetric import ec

from asset_transfer.config import Settings
from asset_transfer.identity import (
    X509Identity,
    create_csr,
    generate_key,
    private_key_to_pem_string,
    verify_signature,
)


CA_NAME = "ca-org1"
CA_HOST = "ca.org1.example.com"
CA_URL = "https://localhost:7054"
GATEWAY_URL = "http://gateway.org1.example.com:5102"


def _b64(data: bytes) -> str:
    return base64.b64encode(data).decode("ascii")


def _check_token(request: httpx.Request) -> x509.Certificate | None:
    """Verify a signed Authorization token; returns the signer's certificate."""
    token = request.headers.get("Authorization", "")
    if "." not in token:
        return None
    cert_b64, sig_b64 = token.split(".", 1)
    cert = x509.load_pem_x509_certificate(base64.b64decode(cert_b64))
    message = ".".join([
        request.method,
        _b64(request.url.path.encode("utf-8")),
        _b64(request.content),
        cert_b64,
    ])
    if not verify_signature(message.encode("utf-8"), base64.b64decode(sig_b64), cert.public_key()):
        return None
    return cert


def _common_name(cert) -> str:
    return cert.subject.get_attributes_for_oid(NameOID.COMMON_NAME)[0].value


class FakeCA:
    """
    In-memory Fabric CA.

    Signs enrollment CSRs with a freshly generated root so the wallet ends
    up holding real certificates, and checks register tokens the same way
    the real server does.
    """

    def __init__(self, admin_id: str = "admin", admin_secret: str = "adminpw"):
        self.key = ec.generate_private_key(ec.SECP256R1())
        name = x509.Name([
            x509.NameAttribute(NameOID.ORGANIZATION_NAME, "org1.example.com"),
            x509.NameAttribute(NameOID.COMMON_NAME, CA_HOST),
        ])
        now = datetime.now(timezone.utc)
        self.cert = (
            x509.CertificateBuilder()
            .subject_name(name)
            .issuer_name(name)
            .public_key(self.key.public_key())
            .serial_number(x509.random_serial_number())
            .not_valid_before(now)
            .not_valid_after(now + timedelta(days=365))
            .add_extension(x509.BasicConstraints(ca=True, path_length=None), critical=True)
            .sign(self.key, hashes.SHA256())
        )
        self.secrets = {admin_id: admin_secret}
        self.admin_id = admin_id
        self.enrolled: list[str] = []
        self.registered: list[dict] = []

    def _error(self, status: int, code: int, message: str) -> httpx.Response:
        return httpx.Response(
            status,
            json={"success": False, "result": None,
                  "errors": [{"code": code, "message": message}], "messages": []},
        )

    def _enroll(self, request: httpx.Request) -> httpx.Response:
        auth = request.headers.get("Authorization", "")
        if not auth.startswith("Basic "):
            return self._error(401, 20, "Authentication failure")
        enrollment_id, _, secret = base64.b64decode(auth[6:]).decode().partition(":")
        if self.secrets.get(enrollment_id) != secret:
            return self._error(401, 20, "Authentication failure")

        body = json.loads(request.content)
        assert body["caname"] == CA_NAME
        csr = x509.load_pem_x509_csr(body["certificate_request"].encode())
        assert _common_name(csr) == enrollment_id

        cert = self.sign_csr(csr)
        self.enrolled.append(enrollment_id)
        pem = cert.public_bytes(serialization.Encoding.PEM)
        return httpx.Response(200, json={
            "success": True,
            "result": {"Cert": _b64(pem), "ServerInfo": {"CAName": CA_NAME}},
            "errors": [],
            "messages": [],
        })

    def _register(self, request: httpx.Request) -> httpx.Response:
        cert = _check_token(request)
        if cert is None or _common_name(cert) != self.admin_id:
            return self._error(401, 20, "Authentication failure")

        body = json.loads(request.content)
        if body["id"] in self.secrets:
            return self._error(400, 74, f"Identity '{body['id']}' is already registered")

        secret = f"{body['id']}-secret"
        self.secrets[body["id"]] = secret
        self.registered.append(body)
        return httpx.Response(200, json={
            "success": True, "result": {"secret": secret}, "errors": [], "messages": [],
        })

    def sign_csr(self, csr: x509.CertificateSigningRequest) -> x509.Certificate:
        now = datetime.now(timezone.utc)
        return (
            x509.CertificateBuilder()
            .subject_name(csr.subject)
            .issuer_name(self.cert.subject)
            .public_key(csr.public_key())
            .serial_number(x509.random_serial_number())
            .not_valid_before(now)
            .not_valid_after(now + timedelta(days=365))
            .sign(self.key, hashes.SHA256())
        )

    def issue_identity(self, enrollment_id: str, msp_id: str = "Org1MSP") -> X509Identity:
        """Identity as enrollment would produce it, without going through HTTP."""
        key = generate_key()
        csr = x509.load_pem_x509_csr(create_csr(enrollment_id, key).encode())
        cert = self.sign_csr(csr)
        return X509Identity(
            msp_id=msp_id,
            certificate=cert.public_bytes(serialization.Encoding.PEM).decode(),
            private_key=private_key_to_pem_string(key),
        )

    def handler(self, request: httpx.Request) -> httpx.Response:
        if request.url.path == "/api/v1/enroll":
            return self._enroll(request)
        if request.url.path == "/api/v1/register":
            return self._register(request)
        return self._error(404, 0, f"Unknown API {request.url.path}")

    @property
    def transport(self) -> httpx.MockTransport:
        return httpx.MockTransport(self.handler)


class FakeGateway:
    """
    REST gateway double that records every accepted submission.

    Args:
        fail_transfer: 1-based index of the Transfer call to reject
        denied_channels: Channels for which discovery is refused
    """

    def __init__(self, fail_transfer: int | None = None, denied_channels=()):
        self.fail_transfer = fail_transfer
        self.denied_channels = set(denied_channels)
        self.requests: list[httpx.Request] = []
        self.submissions: list[tuple[str, list[str]]] = []
        self.queries: list[tuple[str, list[str]]] = []
        self.transfer_attempts = 0
        self.ledger: dict[str, int] = {}

    def handler(self, request: httpx.Request) -> httpx.Response:
        self.requests.append(request)
        cert = _check_token(request)
        if cert is None:
            return httpx.Response(401, json={"error": "invalid signature"})

        if request.method == "GET" and request.url.path == "/chaininfo":
            channel = request.url.params["fly-channel"]
            if channel in self.denied_channels:
                return httpx.Response(403, json={"error": "access denied"})
            return httpx.Response(200, json={"headers": {"channel": channel}, "result": {"height": 7}})

        body = json.loads(request.content)
        func, args = body["func"], body["args"]

        if request.url.path == "/query":
            self.queries.append((func, args))
            return httpx.Response(200, json={"headers": {}, "result": self.ledger})

        if request.url.path == "/transactions":
            assert request.url.params["fly-sync"] == "true"
            assert body["headers"]["type"] == "SendTransaction"
            if func == "Transfer":
                self.transfer_attempts += 1
                if self.transfer_attempts == self.fail_transfer:
                    return httpx.Response(500, json={
                        "headers": {"type": "Error"},
                        "errorMessage": "endorsement failure: insufficient balance",
                        "transactionID": f"tx{len(self.requests)}",
                    })
                self.ledger[args[1]] = self.ledger.get(args[1], 0) + int(args[2])
            self.submissions.append((func, args))
            result = None if func == "InitLedger" else {"from": args[0], "to": args[1], "amount": args[2]}
            return httpx.Response(200, json={
                "headers": {"type": "TransactionSuccess"},
                "transactionID": f"tx{len(self.requests)}",
                "blockNumber": len(self.submissions),
                "result": result,
            })

        return httpx.Response(404, json={"error": f"Unknown path {request.url.path}"})

    @property
    def transport(self) -> httpx.MockTransport:
        return httpx.MockTransport(self.handler)


def make_profile(path: Path, gateway_url: str | None = GATEWAY_URL) -> Path:
    """Write an org1 connection profile shaped like the test network's."""
    client = {"organization": "Org1", "connection": {"timeout": {"peer": {"endorser": "300"}}}}
    if gateway_url:
        client["gateway"] = {"url": gateway_url}
    profile = {
        "name": "test-network-org1",
        "version": "1.0.0",
        "client": client,
        "organizations": {
            "Org1": {
                "mspid": "Org1MSP",
                "peers": ["peer0.org1.example.com"],
                "certificateAuthorities": [CA_HOST],
            }
        },
        "peers": {
            "peer0.org1.example.com": {
                "url": "grpcs://localhost:7051",
                "tlsCACerts": {"pem": "-----BEGIN CERTIFICATE-----\n...\n-----END CERTIFICATE-----\n"},
            }
        },
        "certificateAuthorities": {
            CA_HOST: {
                "url": CA_URL,
                "caName": CA_NAME,
                "tlsCACerts": {"pem": ["-----BEGIN CERTIFICATE-----\n...\n-----END CERTIFICATE-----\n"]},
                "httpOptions": {"verify": False},
            }
        },
    }
    with open(path, "w") as f:
        json.dump(profile, f)
    return path


@pytest.fixture(autouse=True)
def clean_env(monkeypatch):
    """Drop every settings variable a developer shell might export."""
    for field in Settings.model_fields:
        monkeypatch.delenv(field.upper(), raising=False)


@pytest.fixture
def fake_ca() -> FakeCA:
    return FakeCA()


@pytest.fixture
def fake_gateway() -> FakeGateway:
    return FakeGateway()


@pytest.fixture
def profile_path(tmp_path) -> Path:
    return make_profile(tmp_path / "connection-org1.json")


@pytest.fixture
def settings(tmp_path, profile_path) -> Settings:
    """Settings pointing at a temporary wallet and profile."""
    return Settings(
        wallet_path=tmp_path / "wallet",
        connection_profile_path=profile_path,
        _env_file=None,
    )
