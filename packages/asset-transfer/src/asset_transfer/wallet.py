# SPDX-License-Identifier: Apache-2.0
# Copyright (C) 2024-2026 The Birthmark Standard Foundation

"""
Filesystem wallet for application identities.

Each identity lives in its own ``<label>.id`` JSON file inside the wallet
directory, so a wallet written here can be read by the other fabric-samples
applications and vice versa.
"""

import json
import logging
from pathlib import Path
from typing import List, Optional

from .exceptions import WalletError
from .identity import X509Identity

logger = logging.getLogger(__name__)

ID_FILE_SUFFIX = ".id"


class FileSystemWallet:
    """Identity store keyed by user label."""

    def __init__(self, directory: Path):
        """
        Initialize wallet.

        Args:
            directory: Directory holding the identity files (created if missing)
        """
        self.directory = Path(directory)
        self.directory.mkdir(parents=True, exist_ok=True)

    def _path_for(self, label: str) -> Path:
        if not label or "/" in label or "\\" in label or label in (".", ".."):
            raise WalletError(f"Invalid wallet label: {label!r}")
        return self.directory / f"{label}{ID_FILE_SUFFIX}"

    def get(self, label: str) -> Optional[X509Identity]:
        """
        Load the identity stored under a label.

        Returns:
            The identity, or None if the label is not in the wallet

        Raises:
            WalletError: If the stored file cannot be parsed
        """
        path = self._path_for(label)
        if not path.exists():
            return None

        try:
            with open(path, "r") as f:
                data = json.load(f)
            return X509Identity.from_dict(data)
        except (json.JSONDecodeError, KeyError, TypeError, ValueError) as e:
            raise WalletError(f"Corrupt wallet entry {path}: {e}") from e

    def put(self, label: str, identity: X509Identity) -> None:
        """Store (or replace) the identity under a label."""
        path = self._path_for(label)

        # Write to a temp file first so a crash never leaves a half-written identity
        tmp_path = path.with_suffix(path.suffix + ".tmp")
        with open(tmp_path, "w") as f:
            json.dump(identity.to_dict(), f)
        tmp_path.replace(path)

        logger.debug(f"Stored identity {label} in wallet {self.directory}")

    def remove(self, label: str) -> bool:
        """
        Delete an identity.

        Returns:
            True if an identity was removed
        """
        path = self._path_for(label)
        if not path.exists():
            return False
        path.unlink()
        logger.debug(f"Removed identity {label} from wallet {self.directory}")
        return True

    def list(self) -> List[str]:
        """Labels of all stored identities, sorted."""
        return sorted(p.stem for p in self.directory.glob(f"*{ID_FILE_SUFFIX}"))


def build_wallet(wallet_path: Optional[Path]) -> FileSystemWallet:
    """
    Create the wallet that holds the application's credentials.

    Args:
        wallet_path: Wallet directory

    Raises:
        WalletError: If no path is given
    """
    if wallet_path is None:
        raise WalletError("A wallet path is required")

    wallet = FileSystemWallet(wallet_path)
    logger.info(f"Built a file system wallet at {wallet.directory}")
    return wallet
