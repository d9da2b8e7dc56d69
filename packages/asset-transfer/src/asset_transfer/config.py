# SPDX-License-Identifier: Apache-2.0
# Copyright (C) 2024-2026 The Birthmark Standard Foundation

"""Configuration management for the asset transfer application."""

from pathlib import Path
from typing import Optional
from pydantic_settings import BaseSettings, SettingsConfigDict

PACKAGE_DIR = Path(__file__).resolve().parent

# Org1 connection profile written by the fabric-samples test network, relative
# to an application directory such as fabric-samples/asset-transfer-basic/<app>
DEFAULT_CONNECTION_PROFILE = (
    Path("..")
    / ".."
    / "test-network"
    / "organizations"
    / "peerOrganizations"
    / "org1.example.com"
    / "connection-org1.json"
)


class Settings(BaseSettings):
    """Application settings loaded from environment variables."""

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=False,
        extra="ignore",
    )

    # Channel and chaincode
    channel_name: str = "mychannel"
    chaincode_name: str = "basic"

    # Organization identity
    msp_id: str = "Org1MSP"
    wallet_path: Path = PACKAGE_DIR / "wallet"
    app_user_id: str = "pythonAppUser"
    app_user_affiliation: str = "org1.department1"
    admin_user_id: str = "admin"
    admin_user_passwd: str = "adminpw"

    # Network
    ca_host_name: str = "ca.org1.example.com"
    connection_profile_path: Path = DEFAULT_CONNECTION_PROFILE
    gateway_url: Optional[str] = None  # Overrides client.gateway.url in the profile
    discovery_enabled: bool = True
    discovery_as_localhost: bool = True
    request_timeout: float = 30.0

    # Logging
    log_level: str = "INFO"


def load_settings() -> Settings:
    """Read settings from the environment (and .env, if present)."""
    return Settings()
