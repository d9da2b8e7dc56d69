# SPDX-License-Identifier: Apache-2.0
# Copyright (C) 2024-2026 The Birthmark Standard Foundation

"""
Connection profile loading.

The connection profile is the static description of how to reach the
network: organizations, peers, certificate authorities and their TLS
material. The test network writes one JSON profile per organization.
"""

import json
import logging
from dataclasses import dataclass
from pathlib import Path
from typing import Any, Dict, List, Optional

from .exceptions import ProfileError

logger = logging.getLogger(__name__)


@dataclass
class CAInfo:
    """Certificate authority entry from the connection profile."""
    url: str
    ca_name: str
    tls_ca_certs: List[str]
    verify: bool = False


class ConnectionProfile:
    """Read-only view over a parsed connection profile."""

    def __init__(self, data: Dict[str, Any], source: Optional[Path] = None):
        self.data = data
        self.source = source

    @property
    def name(self) -> str:
        return self.data.get("name", "")

    @property
    def organization(self) -> Optional[str]:
        return self.data.get("client", {}).get("organization")

    @property
    def peers(self) -> Dict[str, dict]:
        return self.data.get("peers", {})

    @property
    def gateway_url(self) -> Optional[str]:
        """REST gateway endpoint (client.gateway.url), if the profile has one."""
        return self.data.get("client", {}).get("gateway", {}).get("url")

    def certificate_authority(self, ca_host_name: str) -> CAInfo:
        """
        Look up a certificate authority by its host name.

        Raises:
            ProfileError: If the CA is not described by the profile
        """
        authorities = self.data.get("certificateAuthorities", {})
        if ca_host_name not in authorities:
            raise ProfileError(
                f"Certificate authority {ca_host_name} not found in connection profile "
                f"(known: {', '.join(sorted(authorities)) or 'none'})"
            )

        ca = authorities[ca_host_name]
        if "url" not in ca:
            raise ProfileError(f"Certificate authority {ca_host_name} has no url")

        pem = ca.get("tlsCACerts", {}).get("pem", [])
        if isinstance(pem, str):
            pem = [pem]

        return CAInfo(
            url=ca["url"],
            ca_name=ca.get("caName", ca_host_name),
            tls_ca_certs=pem,
            verify=ca.get("httpOptions", {}).get("verify", False),
        )


def load_connection_profile(path: Path) -> ConnectionProfile:
    """
    Load a JSON connection profile.

    Raises:
        ProfileError: If the file is missing or not valid JSON
    """
    path = Path(path)
    if not path.exists():
        raise ProfileError(f"no such file or directory: {path}")

    try:
        with open(path, "r") as f:
            data = json.load(f)
    except json.JSONDecodeError as e:
        raise ProfileError(f"Invalid connection profile {path}: {e}") from e

    if not isinstance(data, dict):
        raise ProfileError(f"Invalid connection profile {path}: expected a JSON object")

    logger.info(f"Loaded the network configuration located at {path}")
    return ConnectionProfile(data, source=path)


def build_ccp_org1(path: Path) -> ConnectionProfile:
    """Load the org1 connection profile generated by the test network."""
    return load_connection_profile(path)
