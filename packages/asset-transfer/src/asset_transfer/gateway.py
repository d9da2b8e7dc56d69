# SPDX-License-Identifier: Apache-2.0
# Copyright (C) 2024-2026 The Birthmark Standard Foundation

"""
Gateway session to the ledger network.

A gateway binds one wallet identity to one REST gateway endpoint. From it
the application obtains a network (channel) and from the network a
contract, whose transactions are submitted or evaluated through the
gateway. Every request carries a token signed with the identity's key.

Architecture:
- One HTTP client per gateway connection, closed by disconnect()
- Submissions are synchronous: the call returns once the transaction is
  committed (or rejected)
- No retries; failures surface to the caller as TransactionError
"""

import json
import logging
from dataclasses import dataclass
from typing import Dict, Optional

import httpx

from .exceptions import GatewayError, TransactionError
from .identity import X509Identity, create_auth_token
from .profile import ConnectionProfile
from .wallet import FileSystemWallet

logger = logging.getLogger(__name__)


@dataclass
class DiscoveryOptions:
    """Service discovery settings for a gateway connection."""
    enabled: bool = True
    as_localhost: bool = True  # Network deployed locally with docker hostnames


def _error_message(response: httpx.Response, data: dict) -> str:
    return (
        data.get("errorMessage")
        or data.get("error")
        or data.get("message")
        or response.text
        or f"HTTP {response.status_code}"
    )


def _result_bytes(data: dict) -> bytes:
    """Transaction result payload as raw bytes (empty if the function returned nothing)."""
    result = data.get("result")
    if result is None:
        return b""
    if isinstance(result, str):
        return result.encode("utf-8")
    return json.dumps(result).encode("utf-8")


class Contract:
    """A chaincode deployed on a channel."""

    def __init__(self, network: "Network", chaincode_name: str):
        self.network = network
        self.chaincode_name = chaincode_name

    def _envelope(self, name: str, args: tuple) -> dict:
        return {
            "headers": {
                "signer": self.network.gateway.identity_label,
                "channel": self.network.channel_name,
                "chaincode": self.chaincode_name,
            },
            "func": name,
            "args": [str(arg) for arg in args],
        }

    async def submit_transaction(self, name: str, *args: str) -> bytes:
        """
        Submit a transaction to be endorsed, ordered and committed.

        Args:
            name: Transaction function name
            *args: String arguments passed to the function unchanged

        Returns:
            Result payload returned by the transaction function

        Raises:
            TransactionError: If the transaction is rejected
        """
        body = self._envelope(name, args)
        body["headers"]["type"] = "SendTransaction"
        body["init"] = False

        logger.debug(f"Submitting {name} to {self.chaincode_name} on {self.network.channel_name}")
        data = await self.network.gateway._request(
            "POST", "/transactions", body, params={"fly-sync": "true"}, action=name,
        )
        logger.info(
            f"Transaction {name} committed: tx_id={data.get('transactionID')}, "
            f"block={data.get('blockNumber')}"
        )
        return _result_bytes(data)

    async def evaluate_transaction(self, name: str, *args: str) -> bytes:
        """
        Evaluate a transaction function without committing it.

        The call goes to a single peer and only reads world state.
        """
        body = self._envelope(name, args)
        body["strongread"] = False

        logger.debug(f"Evaluating {name} on {self.chaincode_name} on {self.network.channel_name}")
        data = await self.network.gateway._request("POST", "/query", body, action=name)
        return _result_bytes(data)


class Network:
    """A channel reachable through the gateway."""

    def __init__(self, gateway: "Gateway", channel_name: str):
        self.gateway = gateway
        self.channel_name = channel_name
        self._contracts: Dict[str, Contract] = {}

    def get_contract(self, chaincode_name: str) -> Contract:
        if chaincode_name not in self._contracts:
            self._contracts[chaincode_name] = Contract(self, chaincode_name)
        return self._contracts[chaincode_name]


class Gateway:
    """
    Authenticated session to the network for one wallet identity.

    Usable as an async context manager:

        async with Gateway() as gateway:
            await gateway.connect(ccp, wallet=wallet, identity="appUser")
            ...
    """

    def __init__(self):
        self.identity: Optional[X509Identity] = None
        self.identity_label: Optional[str] = None
        self.url: Optional[httpx.URL] = None
        self.discovery = DiscoveryOptions()
        self._client: Optional[httpx.AsyncClient] = None
        self._networks: Dict[str, Network] = {}

    @property
    def connected(self) -> bool:
        return self._client is not None

    async def connect(
        self,
        ccp: ConnectionProfile,
        wallet: FileSystemWallet,
        identity: str,
        discovery: Optional[DiscoveryOptions] = None,
        gateway_url: Optional[str] = None,
        timeout: float = 30.0,
        transport: Optional[httpx.AsyncBaseTransport] = None,
    ) -> None:
        """
        Open the session.

        Args:
            ccp: Connection profile
            wallet: Wallet holding the identity
            identity: Wallet label of the identity that signs all requests
            discovery: Discovery options (defaults: enabled, as localhost)
            gateway_url: Gateway endpoint, overriding the profile's client.gateway.url
            timeout: Request timeout in seconds
            transport: Optional httpx transport (tests use a mock transport)

        Raises:
            GatewayError: If the identity or gateway endpoint cannot be resolved
        """
        if self.connected:
            raise GatewayError("Gateway is already connected")

        user = wallet.get(identity)
        if user is None:
            raise GatewayError(f"Identity not found in wallet: {identity}")

        endpoint = gateway_url or ccp.gateway_url
        from_profile = not gateway_url
        if not endpoint:
            raise GatewayError(
                "No gateway endpoint: set client.gateway.url in the connection profile "
                "or GATEWAY_URL"
            )

        self.discovery = discovery or DiscoveryOptions()
        url = httpx.URL(endpoint)
        # Only profile endpoints carry docker hostnames; an explicit URL is used as given
        if self.discovery.as_localhost and from_profile:
            url = url.copy_with(host="localhost")

        self.identity = user
        self.identity_label = identity
        self.url = url
        self._client = httpx.AsyncClient(
            base_url=str(url).rstrip("/"),
            timeout=timeout,
            transport=transport,
        )
        logger.info(f"Gateway connected to {url} as {identity} ({user.msp_id})")

    async def get_network(self, channel_name: str) -> Network:
        """
        Resolve a channel, confirming the identity may access it.

        Raises:
            GatewayError: If the channel is unknown or access is denied
        """
        if channel_name in self._networks:
            return self._networks[channel_name]

        self._require_connected()

        if self.discovery.enabled:
            try:
                await self._request(
                    "GET",
                    "/chaininfo",
                    None,
                    params={"fly-channel": channel_name, "fly-signer": self.identity_label},
                    action="chaininfo",
                )
            except TransactionError as e:
                raise GatewayError(f"DiscoveryService: {channel_name} error: {e}") from e

        network = Network(self, channel_name)
        self._networks[channel_name] = network
        return network

    async def disconnect(self) -> None:
        """Close the session. Safe to call more than once."""
        if self._client is None:
            return
        await self._client.aclose()
        self._client = None
        self._networks.clear()
        logger.info("Gateway disconnected")

    async def __aenter__(self) -> "Gateway":
        return self

    async def __aexit__(self, exc_type, exc, tb) -> None:
        await self.disconnect()

    def _require_connected(self) -> httpx.AsyncClient:
        if self._client is None:
            raise GatewayError("Gateway is not connected")
        return self._client

    async def _request(
        self,
        method: str,
        path: str,
        body: Optional[dict],
        params: Optional[dict] = None,
        action: str = "",
    ) -> dict:
        """
        Send a signed request to the gateway and return the decoded body.

        Raises:
            TransactionError: On transport failure, non-2xx status, or an
                error receipt
        """
        client = self._require_connected()
        content = json.dumps(body).encode("utf-8") if body is not None else b""
        request_path = (self.url.path.rstrip("/") if self.url else "") + path
        headers = {
            "Authorization": create_auth_token(self.identity, content, method, request_path),
        }
        if body is not None:
            headers["Content-Type"] = "application/json"

        try:
            response = await client.request(
                method, path, content=content or None, params=params, headers=headers,
            )
        except httpx.TimeoutException as e:
            raise TransactionError(f"{action} timed out waiting for the gateway") from e
        except httpx.HTTPError as e:
            raise TransactionError(f"Cannot reach gateway at {self.url}: {e}") from e

        try:
            data = response.json()
        except ValueError:
            data = {}
        if not isinstance(data, dict):
            data = {"result": data}

        receipt_type = (data.get("headers") or {}).get("type")
        if response.status_code >= 400 or receipt_type == "Error":
            message = _error_message(response, data)
            logger.error(f"{action} rejected by gateway: {response.status_code} - {message}")
            raise TransactionError(
                message,
                transaction_id=data.get("transactionID"),
                status_code=response.status_code,
            )

        return data
