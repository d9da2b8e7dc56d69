# SPDX-License-Identifier: Apache-2.0
# Copyright (C) 2024-2026 The Birthmark Standard Foundation

"""Error types raised by the asset transfer application."""

from typing import Optional


class AssetTransferError(Exception):
    """Base class for every failure surfaced by this package."""


class ProfileError(AssetTransferError):
    """Connection profile missing or malformed."""


class WalletError(AssetTransferError):
    """Wallet entry could not be read or written."""


class CAError(AssetTransferError):
    """Certificate authority rejected a request or could not be reached."""

    def __init__(self, message: str, errors: Optional[list] = None):
        super().__init__(message)
        self.errors = errors or []


class GatewayError(AssetTransferError):
    """Gateway connection or channel discovery failed."""


class TransactionError(GatewayError):
    """A submitted or evaluated transaction was rejected."""

    def __init__(
        self,
        message: str,
        transaction_id: Optional[str] = None,
        status_code: Optional[int] = None,
    ):
        super().__init__(message)
        self.transaction_id = transaction_id
        self.status_code = status_code
