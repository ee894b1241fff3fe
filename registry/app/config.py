"""
Runtime configuration for the Color ID verification service.

This module centralizes environment-driven configuration: the network
table (TIP-0044), metadata limits, and the chain cross-check settings.

Configuration is an immutable value passed into the coordinator. There
are no process-wide network or limit tables, so one process can serve
several network contexts side by side.
"""

from __future__ import annotations

import os
import re
from typing import Optional, Tuple

from pydantic import BaseModel, ConfigDict, Field, field_validator


# Network label format used by the registration form dropdown,
# e.g. "Tapyrus Testnet - Network ID: 1939510133"
_NETWORK_LABEL_ID = re.compile(r"Network ID:\s*(\d+)")


class NetworkInfo(BaseModel):
    """A Tapyrus network the registry accepts tokens for."""

    id: str = Field(..., description="Numeric network identifier")
    name: str = Field(..., description="Display name")
    label: str = Field(..., description="Short label (e.g. 'prod')")
    api_base_url: Optional[str] = Field(
        None,
        description=(
            "Base URL of the block explorer API used for chain "
            "cross-checks. Cross-checks are impossible without it."
        ),
    )

    model_config = ConfigDict(frozen=True)


class MetadataLimits(BaseModel):
    """Length and range limits enforced by the metadata validator."""

    name: int = Field(64, gt=0)
    symbol: int = Field(12, gt=0)
    description: int = Field(256, gt=0)
    max_decimals: int = Field(18, ge=0)

    model_config = ConfigDict(frozen=True)


DEFAULT_NETWORKS: Tuple[NetworkInfo, ...] = (
    NetworkInfo(id="15215628", name="Tapyrus API", label="prod"),
    NetworkInfo(id="1939510133", name="Tapyrus Testnet", label="testnet"),
)


class RegistryConfig(BaseModel):
    """
    Runtime configuration for the verification service.

    Read-only at runtime. Nothing here may make a derivation
    non-deterministic; only the optional chain cross-check depends on it.
    """

    # ------------------------------------------------------------------
    # Networks and schema limits
    # ------------------------------------------------------------------

    NETWORKS: Tuple[NetworkInfo, ...] = Field(
        DEFAULT_NETWORKS,
        description="Accepted networks (TIP-0044)",
    )

    LIMITS: MetadataLimits = Field(
        default_factory=MetadataLimits,
        description="Metadata length and range limits",
    )

    # ------------------------------------------------------------------
    # Chain cross-check
    # ------------------------------------------------------------------

    ENABLE_CHAIN_CROSS_CHECK: bool = Field(
        False,
        description=(
            "Compare the derived script of outpoint-bound tokens against "
            "the script recorded on chain"
        ),
    )

    CHAIN_API_TIMEOUT_SECONDS: float = Field(
        10.0,
        description="Single bounded wait for the explorer request",
    )

    # ------------------------------------------------------------------
    # Validators (Pydantic v2)
    # ------------------------------------------------------------------

    @field_validator("NETWORKS")
    @classmethod
    def network_ids_unique(
        cls, v: Tuple[NetworkInfo, ...]
    ) -> Tuple[NetworkInfo, ...]:
        if not v:
            raise ValueError("At least one network must be configured.")
        ids = [n.id for n in v]
        if len(ids) != len(set(ids)):
            raise ValueError(f"Duplicate network ids configured: {ids}")
        return v

    @field_validator("CHAIN_API_TIMEOUT_SECONDS")
    @classmethod
    def timeout_positive(cls, v: float) -> float:
        if v <= 0:
            raise ValueError("CHAIN_API_TIMEOUT_SECONDS must be positive.")
        return v

    # ------------------------------------------------------------------
    # Lookups
    # ------------------------------------------------------------------

    def resolve_network(self, value: Optional[str]) -> Optional[NetworkInfo]:
        """
        Resolve a network id, short label, name, or form dropdown label.

        Returns None when nothing matches.
        """
        if not value:
            return None

        value = value.strip()
        for network in self.NETWORKS:
            if value in (network.id, network.label, network.name):
                return network

        match = _NETWORK_LABEL_ID.search(value)
        if match:
            network_id = match.group(1)
            for network in self.NETWORKS:
                if network.id == network_id:
                    return network

        return None

    # ------------------------------------------------------------------
    # Construction
    # ------------------------------------------------------------------

    @classmethod
    def from_env(cls) -> "RegistryConfig":
        """
        Load configuration from environment variables.

        Explorer URLs are read per network from
        REGISTRY_NETWORK_<ID>_API_URL. All values are parsed once at
        startup and must remain immutable.
        """

        def env_bool(name: str, default: bool) -> bool:
            raw = os.getenv(name)
            if raw is None:
                return default
            return raw.lower() in {"1", "true", "yes", "on"}

        networks = tuple(
            network.model_copy(
                update={
                    "api_base_url": (
                        os.getenv(f"REGISTRY_NETWORK_{network.id}_API_URL")
                        or None
                    )
                }
            )
            for network in DEFAULT_NETWORKS
        )

        return cls(
            NETWORKS=networks,
            LIMITS=MetadataLimits(
                name=int(os.getenv("REGISTRY_MAX_NAME_LENGTH", "64")),
                symbol=int(os.getenv("REGISTRY_MAX_SYMBOL_LENGTH", "12")),
                description=int(
                    os.getenv("REGISTRY_MAX_DESCRIPTION_LENGTH", "256")
                ),
                max_decimals=int(os.getenv("REGISTRY_MAX_DECIMALS", "18")),
            ),
            ENABLE_CHAIN_CROSS_CHECK=env_bool(
                "REGISTRY_ENABLE_CHAIN_CROSS_CHECK", False
            ),
            CHAIN_API_TIMEOUT_SECONDS=float(
                os.getenv("REGISTRY_CHAIN_API_TIMEOUT_SECONDS", "10")
            ),
        )

    model_config = {
        "frozen": True,
    }
