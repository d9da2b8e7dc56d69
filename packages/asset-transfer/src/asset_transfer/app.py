# SPDX-License-Identifier: Apache-2.0
# Copyright (C) 2024-2026 The Birthmark Standard Foundation

"""
Asset transfer application.

Enrolls the application identity, connects a gateway to the channel and
submits InitLedger followed by a fixed sequence of Transfer transactions
to the basic asset-transfer chaincode.

Pre-requisites:
- fabric-samples test network with CAs, from fabric-samples/test-network:
      ./network.sh up createChannel -ca
- an asset-transfer-basic chaincode deployed as "basic" on "mychannel":
      ./network.sh deployCC -ccn basic -ccp ../asset-transfer-basic/chaincode-javascript/ -ccl javascript
- a REST gateway for org1 (client.gateway.url in the connection profile,
  or GATEWAY_URL)

If the run fails with "access denied" during discovery, or the CA reports
an authentication failure, the CA was most likely restarted and the
certificates saved in the wallet are no longer valid. Delete the wallet
directory and run again to enroll fresh identities.
"""

import asyncio
import json
import logging
import sys
from dataclasses import dataclass
from typing import Optional, Sequence

import httpx

from .ca import build_ca_client, enroll_admin, register_and_enroll_user
from .config import Settings, load_settings
from .gateway import DiscoveryOptions, Gateway
from .profile import build_ccp_org1
from .wallet import build_wallet

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class TransferArgs:
    """Arguments of one Transfer call, passed to the chaincode unparsed."""
    from_account: str
    to_account: str
    amount: str

    def as_args(self) -> tuple[str, str, str]:
        return (self.from_account, self.to_account, self.amount)


# Submitted in this order; a rejection stops the sequence
TRANSFERS: tuple[TransferArgs, ...] = (
    TransferArgs(
        "7cafb40b30e8f7f0c8f57393e2ea63ff58a95907",
        "f5c705db130ec0cbda536bfacc8e38425b427862",
        "7500000",
    ),
    TransferArgs(
        "1a677a3795f8a24b5dd99f83ea31f87595e25db1",
        "18f1b4386f2e19e7dbf169ab2469c8fa8bc02976",
        "1000000",
    ),
    TransferArgs(
        "0a8077182848001f47826e249f5d8e821ea263bd",
        "1a677a3795f8a24b5dd99f83ea31f87595e25db1",
        "100000",
    ),
    TransferArgs(
        "1a677a3795f8a24b5dd99f83ea31f87595e25db1",
        "b284bea203a5c7e0fbae062650c067297579106a",
        "129000000",
    ),
    TransferArgs(
        "78e15f1699dbb6c8a438e90c02044cfa9b9233f3",
        "17732863dbd50ee07039048d05d1a144297492b2",
        "220000000",
    ),
)


def pretty_json_string(data: bytes | str) -> str:
    """Re-indent a JSON payload for display; non-JSON is shown as text."""
    if isinstance(data, bytes):
        data = data.decode("utf-8", errors="replace")
    if not data:
        return ""
    try:
        return json.dumps(json.loads(data), indent=2)
    except ValueError:
        return data


async def run(
    settings: Settings,
    transfers: Sequence[TransferArgs] = TRANSFERS,
    gateway: Optional[Gateway] = None,
    ca_transport: Optional[httpx.AsyncBaseTransport] = None,
    gateway_transport: Optional[httpx.AsyncBaseTransport] = None,
) -> None:
    """
    Run the enrollment and transaction sequence.

    Args:
        settings: Application settings
        transfers: Transfer calls to submit after InitLedger, in order
        gateway: Gateway to use (a new one by default)
        ca_transport: Optional httpx transport for CA requests
        gateway_transport: Optional httpx transport for gateway requests

    Raises:
        AssetTransferError: On the first failing step; later steps never run
    """
    # In-memory view of the network configuration (connection profile)
    ccp = build_ccp_org1(settings.connection_profile_path)

    ca_client = build_ca_client(
        ccp,
        settings.ca_host_name,
        timeout=settings.request_timeout,
        transport=ca_transport,
    )

    wallet = build_wallet(settings.wallet_path)

    # In a real application these would be one-off administrative flows
    await enroll_admin(
        ca_client,
        wallet,
        settings.msp_id,
        settings.admin_user_id,
        settings.admin_user_passwd,
    )
    await register_and_enroll_user(
        ca_client,
        wallet,
        settings.msp_id,
        settings.app_user_id,
        settings.app_user_affiliation,
        admin_user_id=settings.admin_user_id,
    )

    gateway = gateway or Gateway()
    try:
        # Everything submitted through this gateway is signed by the app user
        await gateway.connect(
            ccp,
            wallet=wallet,
            identity=settings.app_user_id,
            discovery=DiscoveryOptions(
                enabled=settings.discovery_enabled,
                as_localhost=settings.discovery_as_localhost,
            ),
            gateway_url=settings.gateway_url,
            timeout=settings.request_timeout,
            transport=gateway_transport,
        )

        network = await gateway.get_network(settings.channel_name)
        contract = network.get_contract(settings.chaincode_name)

        print("\n--> Submit Transaction: InitLedger, function creates the initial set of assets on the ledger")
        await contract.submit_transaction("InitLedger")
        print("*** Result: committed")

        for number, transfer in enumerate(transfers, start=1):
            print(
                f"\n--> Submit Transaction: Transfer {number}: "
                f"{transfer.from_account} -> {transfer.to_account} ({transfer.amount})"
            )
            result = await contract.submit_transaction("Transfer", *transfer.as_args())
            print(f"*** Result: {pretty_json_string(result)}")
    finally:
        await gateway.disconnect()


def main() -> None:
    """Console entry point; exits 1 on any failure."""
    logging.basicConfig(
        level=logging.INFO,
        format='%(asctime)s - %(name)s - %(levelname)s - %(message)s',
    )

    try:
        settings = load_settings()
        logging.getLogger().setLevel(settings.log_level.upper())
        asyncio.run(run(settings))
    except Exception as e:
        logger.error(f"******** FAILED to run the application: {e}")
        sys.exit(1)


if __name__ == "__main__":
    main()
