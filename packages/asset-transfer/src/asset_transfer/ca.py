# SPDX-License-Identifier: Apache-2.0
# Copyright (C) 2024-2026 The Birthmark Standard Foundation

"""
Certificate authority client and enrollment helpers.

Talks to the Fabric CA REST API to enroll the CA admin and to register and
enroll the application user. Both helpers are idempotent: identities that
are already in the wallet are left alone, so running the application again
does not re-register anyone.
"""

import base64
import json
import logging
import ssl
from typing import Optional

import httpx

from .exceptions import CAError
from .identity import (
    X509Identity,
    create_auth_token,
    create_csr,
    generate_key,
    private_key_to_pem_string,
)
from .profile import CAInfo, ConnectionProfile
from .wallet import FileSystemWallet

logger = logging.getLogger(__name__)

API_PREFIX = "/api/v1"


class FabricCAClient:
    """
    Async client for one Fabric CA instance.

    Each call opens its own HTTP connection; the CA is contacted only during
    the enrollment phase.
    """

    def __init__(
        self,
        url: str,
        ca_name: str,
        tls_ca_certs: Optional[list[str]] = None,
        verify: bool = False,
        timeout: float = 30.0,
        transport: Optional[httpx.AsyncBaseTransport] = None,
    ):
        """
        Initialize CA client.

        Args:
            url: CA base URL, e.g. https://localhost:7054
            ca_name: Name of the CA instance served at that URL
            tls_ca_certs: PEM certificates trusted for the CA's TLS endpoint
            verify: Verify the CA's TLS certificate
            timeout: Request timeout in seconds
            transport: Optional httpx transport (tests use a mock transport)
        """
        self.url = url.rstrip("/")
        self.ca_name = ca_name
        self.tls_ca_certs = tls_ca_certs or []
        self.verify = verify
        self.timeout = timeout
        self._transport = transport

    def _ssl_verify(self) -> ssl.SSLContext | bool:
        if not self.verify:
            return False
        if self.tls_ca_certs:
            return ssl.create_default_context(cadata="\n".join(self.tls_ca_certs))
        return True

    def _client(self, **kwargs) -> httpx.AsyncClient:
        return httpx.AsyncClient(
            base_url=self.url,
            timeout=self.timeout,
            verify=self._ssl_verify(),
            transport=self._transport,
            **kwargs,
        )

    async def _post(self, api_method: str, body: dict, **kwargs) -> dict:
        """
        POST to the CA and unwrap the standard response envelope.

        Raises:
            CAError: On transport failure, non-2xx status, or success=false
        """
        path = f"{API_PREFIX}/{api_method}"
        content = json.dumps(body).encode("utf-8")
        headers = {"Content-Type": "application/json", **kwargs.pop("headers", {})}

        try:
            async with self._client(**kwargs) as client:
                response = await client.post(path, content=content, headers=headers)
        except httpx.TimeoutException as e:
            raise CAError(f"fabric-ca request {api_method} timed out at {self.url}") from e
        except httpx.HTTPError as e:
            raise CAError(f"Cannot connect to certificate authority at {self.url}: {e}") from e

        try:
            data = response.json()
        except ValueError:
            data = {}
        if not isinstance(data, dict):
            data = {}

        errors = data.get("errors") or []
        if response.status_code >= 400 or not data.get("success", False):
            detail = errors or response.text
            raise CAError(
                f"fabric-ca request {api_method} failed with errors {detail}",
                errors=errors,
            )

        return data.get("result") or {}

    async def enroll(self, enrollment_id: str, secret: str, csr_pem: str) -> str:
        """
        Enroll an identity and obtain its certificate.

        Args:
            enrollment_id: Registered enrollment ID
            secret: Enrollment secret
            csr_pem: PEM CSR whose CN is the enrollment ID

        Returns:
            PEM-encoded signed certificate
        """
        result = await self._post(
            "enroll",
            {"certificate_request": csr_pem, "caname": self.ca_name},
            auth=(enrollment_id, secret),
        )

        cert_b64 = result.get("Cert")
        if not cert_b64:
            raise CAError(f"fabric-ca enroll response for {enrollment_id} has no certificate")

        logger.debug(f"Enrolled {enrollment_id} with CA {self.ca_name}")
        return base64.b64decode(cert_b64).decode("utf-8")

    async def register(
        self,
        enrollment_id: str,
        affiliation: str,
        registrar: X509Identity,
        role: str = "client",
        max_enrollments: int = 0,
    ) -> str:
        """
        Register a new identity, signing the request as the registrar.

        Args:
            enrollment_id: ID to register
            affiliation: Affiliation, e.g. org1.department1
            registrar: Identity allowed to register (normally the CA admin)
            role: Identity type
            max_enrollments: 0 uses the CA's default limit

        Returns:
            Enrollment secret for the new identity
        """
        body = {
            "id": enrollment_id,
            "type": role,
            "affiliation": affiliation,
            "max_enrollments": max_enrollments,
            "attrs": [],
            "caname": self.ca_name,
        }
        path = f"{API_PREFIX}/register"
        token = create_auth_token(
            registrar,
            json.dumps(body).encode("utf-8"),
            "POST",
            path,
        )

        result = await self._post("register", body, headers={"Authorization": token})

        secret = result.get("secret")
        if not secret:
            raise CAError(f"fabric-ca register response for {enrollment_id} has no secret")

        logger.debug(f"Registered {enrollment_id} with CA {self.ca_name}")
        return secret

    async def enroll_identity(
        self,
        enrollment_id: str,
        secret: str,
        msp_id: str,
    ) -> X509Identity:
        """Generate a key, enroll it, and package the result as a wallet identity."""
        private_key = generate_key()
        certificate = await self.enroll(
            enrollment_id,
            secret,
            create_csr(enrollment_id, private_key),
        )
        return X509Identity(
            msp_id=msp_id,
            certificate=certificate,
            private_key=private_key_to_pem_string(private_key),
        )


def build_ca_client(
    ccp: ConnectionProfile,
    ca_host_name: str,
    timeout: float = 30.0,
    transport: Optional[httpx.AsyncBaseTransport] = None,
) -> FabricCAClient:
    """Create a CA client from the profile's entry for ``ca_host_name``."""
    info: CAInfo = ccp.certificate_authority(ca_host_name)
    client = FabricCAClient(
        url=info.url,
        ca_name=info.ca_name,
        tls_ca_certs=info.tls_ca_certs,
        verify=info.verify,
        timeout=timeout,
        transport=transport,
    )
    logger.info(f"Built a CA Client named {info.ca_name}")
    return client


async def enroll_admin(
    ca_client: FabricCAClient,
    wallet: FileSystemWallet,
    msp_id: str,
    admin_user_id: str = "admin",
    admin_user_passwd: str = "adminpw",
) -> X509Identity:
    """
    Enroll the CA bootstrap admin unless it is already in the wallet.

    Returns:
        The admin identity (existing or newly enrolled)
    """
    existing = wallet.get(admin_user_id)
    if existing is not None:
        logger.info("An identity for the admin user already exists in the wallet")
        return existing

    identity = await ca_client.enroll_identity(admin_user_id, admin_user_passwd, msp_id)
    wallet.put(admin_user_id, identity)
    logger.info("Successfully enrolled admin user and imported it into the wallet")
    return identity


async def register_and_enroll_user(
    ca_client: FabricCAClient,
    wallet: FileSystemWallet,
    msp_id: str,
    user_id: str,
    affiliation: str,
    admin_user_id: str = "admin",
) -> X509Identity:
    """
    Register and enroll an application user unless it is already in the wallet.

    Raises:
        CAError: If the admin identity needed to register the user is missing
    """
    existing = wallet.get(user_id)
    if existing is not None:
        logger.info(f"An identity for the user {user_id} already exists in the wallet")
        return existing

    admin = wallet.get(admin_user_id)
    if admin is None:
        raise CAError(
            "An identity for the admin user does not exist in the wallet. "
            "Enroll the admin user before retrying"
        )

    secret = await ca_client.register(user_id, affiliation, registrar=admin, role="client")
    identity = await ca_client.enroll_identity(user_id, secret, msp_id)
    wallet.put(user_id, identity)
    logger.info(f"Successfully registered and enrolled user {user_id} and imported it into the wallet")
    return identity
