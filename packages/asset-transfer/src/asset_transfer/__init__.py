# SPDX-License-Identifier: Apache-2.0
# Copyright (C) 2024-2026 The Birthmark Standard Foundation

"""
Asset Transfer Application

Enrolls an application identity with the certificate authority and submits
asset-transfer transactions to the basic chaincode through a gateway.
"""

__version__ = "0.1.0"

from .exceptions import (
    AssetTransferError,
    ProfileError,
    WalletError,
    CAError,
    GatewayError,
    TransactionError,
)

from .identity import X509Identity
from .wallet import FileSystemWallet, build_wallet
from .profile import ConnectionProfile, build_ccp_org1
from .ca import FabricCAClient, build_ca_client, enroll_admin, register_and_enroll_user
from .gateway import Contract, DiscoveryOptions, Gateway, Network

__all__ = [
    # Errors
    "AssetTransferError",
    "ProfileError",
    "WalletError",
    "CAError",
    "GatewayError",
    "TransactionError",
    # Identities
    "X509Identity",
    "FileSystemWallet",
    "build_wallet",
    # Network
    "ConnectionProfile",
    "build_ccp_org1",
    "FabricCAClient",
    "build_ca_client",
    "enroll_admin",
    "register_and_enroll_user",
    "Gateway",
    "Network",
    "Contract",
    "DiscoveryOptions",
]
