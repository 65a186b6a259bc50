#!/usr/bin/env python3
"""Configuration management for the Polymer relayer.

This module provides type-safe configuration dataclasses with validation.
Chains, credentials and tuning knobs are loaded from environment variables,
using the same variable naming as the contract deployment tooling.
"""

import logging
import os
from collections.abc import Iterable
from dataclasses import dataclass, field
from typing import ClassVar
from urllib.parse import urlparse

from web3 import Web3

from .exceptions import ConfigurationError

# Get logger for this module
logger = logging.getLogger(__name__)

DEFAULT_POLYMER_API_URL = "https://proof.sepolia.polymer.zone"

# Chain keys understood without an explicit <KEY>_CHAIN_ID
KNOWN_CHAINS: dict[str, tuple[str, int]] = {
    "optimism-sepolia": ("Optimism Sepolia", 11155420),
    "base-sepolia": ("Base Sepolia", 84532),
}


def env_prefix(chain_key: str) -> str:
    """Map a chain key to its environment variable prefix (base-sepolia -> BASE_SEPOLIA)."""
    return chain_key.strip().upper().replace("-", "_")


@dataclass(frozen=True, slots=True)
class ChainConfig:
    """Configuration for one activated chain.

    Attributes:
        name: Human-readable chain name
        chain_id: EVM chain ID, unique across the configured set
        rpc_url: HTTP(S) or WS(S) RPC endpoint
        contract_address: Checksummed address of the CrossChainStore contract
    """

    name: str
    chain_id: int
    rpc_url: str
    contract_address: str

    def __post_init__(self) -> None:
        """Validate chain configuration."""
        if self.chain_id <= 0:
            raise ConfigurationError(f"Chain ID must be positive for {self.name}, got {self.chain_id}")

        if not self.rpc_url:
            raise ConfigurationError(f"RPC URL is required for {self.name}")

        parsed = urlparse(self.rpc_url)
        if parsed.scheme not in ('http', 'https', 'ws', 'wss'):
            raise ConfigurationError(
                f"Invalid RPC URL scheme for {self.name}: {parsed.scheme}. "
                "Expected http, https, ws, or wss"
            )

        if not self.contract_address:
            raise ConfigurationError(f"Contract address is required for {self.name}")

        if not Web3.is_address(self.contract_address):
            raise ConfigurationError(
                f"Invalid contract address for {self.name}: {self.contract_address}"
            )

        checksummed = Web3.to_checksum_address(self.contract_address)
        if checksummed != self.contract_address:
            # Use object.__setattr__ since dataclass is frozen
            object.__setattr__(self, 'contract_address', checksummed)


@dataclass(frozen=True, slots=True)
class RelaySettings:
    """Timing and safety knobs for the relay pipeline."""
    proof_initial_delay: float = 10.0  # seconds before the first proof poll
    proof_poll_interval: float = 5.0  # seconds between later polls
    proof_max_attempts: int = 10
    request_timeout: float = 30.0  # proof API HTTP timeout
    rpc_timeout: float = 30.0  # bound on every chain RPC call
    confirmation_timeout: float = 120.0  # wait for destination inclusion
    gas_multiplier: float = 1.0  # applied to the gas estimate
    polling_interval: float = 2.0  # event subscription tick
    max_block_range: int = 1000  # blocks per get_logs call
    status_log_interval: float = 60.0
    max_tracked_events: int = 10_000

    ENV_OVERRIDES: ClassVar[tuple[tuple[str, str, type], ...]] = (
        ("PROOF_INITIAL_DELAY", "proof_initial_delay", float),
        ("PROOF_POLL_INTERVAL", "proof_poll_interval", float),
        ("PROOF_MAX_ATTEMPTS", "proof_max_attempts", int),
        ("REQUEST_TIMEOUT", "request_timeout", float),
        ("RPC_TIMEOUT", "rpc_timeout", float),
        ("CONFIRMATION_TIMEOUT", "confirmation_timeout", float),
        ("GAS_MULTIPLIER", "gas_multiplier", float),
        ("POLLING_INTERVAL", "polling_interval", float),
        ("MAX_BLOCK_RANGE", "max_block_range", int),
    )

    def __post_init__(self) -> None:
        """Validate relay settings."""
        if self.proof_initial_delay < 0 or self.proof_poll_interval < 0:
            raise ConfigurationError("Proof poll delays must be non-negative")
        if self.proof_max_attempts <= 0:
            raise ConfigurationError(
                f"Proof max attempts must be positive, got {self.proof_max_attempts}"
            )
        for name in ('request_timeout', 'rpc_timeout', 'confirmation_timeout', 'polling_interval'):
            if getattr(self, name) <= 0:
                raise ConfigurationError(f"{name} must be positive, got {getattr(self, name)}")
        if self.gas_multiplier < 1.0:
            raise ConfigurationError(f"Gas multiplier must be >= 1.0, got {self.gas_multiplier}")
        if self.max_block_range <= 0:
            raise ConfigurationError(f"Max block range must be positive, got {self.max_block_range}")
        if self.max_tracked_events <= 0:
            raise ConfigurationError(
                f"Max tracked events must be positive, got {self.max_tracked_events}"
            )

    @classmethod
    def from_env(cls) -> "RelaySettings":
        """Load overrides from environment variables, keeping defaults for unset ones."""
        overrides: dict[str, float | int] = {}
        for env_name, attr, cast in cls.ENV_OVERRIDES:
            raw = os.environ.get(env_name)
            if raw is None or raw == "":
                continue
            try:
                overrides[attr] = cast(raw)
            except ValueError:
                raise ConfigurationError(f"Invalid value for {env_name}: {raw!r}") from None
        return cls(**overrides)


@dataclass(frozen=True, slots=True)
class RelayerConfig:
    """Main configuration for the Polymer relayer.

    Attributes:
        chains: Activated chains, one listener each
        private_key: Signing key shared by every destination submission
        polymer_api_key: Bearer token for the proof API
        polymer_api_url: Proof API endpoint
        settings: Pipeline timing and safety knobs
    """

    chains: tuple[ChainConfig, ...]
    private_key: str
    polymer_api_key: str
    polymer_api_url: str = DEFAULT_POLYMER_API_URL
    settings: RelaySettings = field(default_factory=RelaySettings)

    def __post_init__(self) -> None:
        """Validate relayer configuration."""
        if not self.chains:
            raise ConfigurationError(
                "No chains are activated. Please set the RELAYER_ACTIVATED_CHAINS environment variable."
            )

        seen: set[int] = set()
        for chain in self.chains:
            if chain.chain_id in seen:
                raise ConfigurationError(f"Duplicate chain ID {chain.chain_id} in configuration")
            seen.add(chain.chain_id)

        key = self.private_key.removeprefix('0x') if self.private_key else ""
        if len(key) != 64:
            raise ConfigurationError(
                f"Invalid private key length. Expected 64 hex characters, got {len(key)}"
            )
        try:
            int(key, 16)
        except ValueError:
            raise ConfigurationError("Invalid private key format. Must be hexadecimal") from None

        if not self.polymer_api_key:
            raise ConfigurationError("POLYMER_API_KEY environment variable is required")

    @staticmethod
    def load_chain(chain_key: str) -> ChainConfig:
        """Build a ChainConfig for one chain key from <KEY>_RPC and <KEY>_CONTRACT_ADDRESS."""
        prefix = env_prefix(chain_key)
        rpc_url = os.environ.get(f"{prefix}_RPC", "")
        if not rpc_url:
            raise ConfigurationError(f"Missing environment variable: {prefix}_RPC")

        contract_address = os.environ.get(f"{prefix}_CONTRACT_ADDRESS", "")
        if not contract_address:
            raise ConfigurationError(f"Missing environment variable: {prefix}_CONTRACT_ADDRESS")

        if chain_key in KNOWN_CHAINS:
            name, chain_id = KNOWN_CHAINS[chain_key]
        else:
            raw_id = os.environ.get(f"{prefix}_CHAIN_ID", "")
            if not raw_id:
                raise ConfigurationError(
                    f"Unknown chain '{chain_key}': set {prefix}_CHAIN_ID. "
                    f"Known chains: {', '.join(sorted(KNOWN_CHAINS))}"
                )
            try:
                chain_id = int(raw_id)
            except ValueError:
                raise ConfigurationError(f"Invalid value for {prefix}_CHAIN_ID: {raw_id!r}") from None
            name = os.environ.get(f"{prefix}_NAME", chain_key)

        return ChainConfig(
            name=name,
            chain_id=chain_id,
            rpc_url=rpc_url,
            contract_address=contract_address,
        )

    @classmethod
    def from_env(cls, activated_chains: Iterable[str] | None = None) -> "RelayerConfig":
        """Load configuration from environment variables.

        Args:
            activated_chains: Chain keys to activate; defaults to RELAYER_ACTIVATED_CHAINS

        Returns:
            RelayerConfig instance with loaded values

        Raises:
            ConfigurationError: If required environment variables are missing or invalid
        """
        if activated_chains is None:
            raw = os.environ.get("RELAYER_ACTIVATED_CHAINS", "")
            activated_chains = raw.split(",")
        keys = [key.strip() for key in activated_chains if key and key.strip()]

        chains = tuple(cls.load_chain(key) for key in keys)

        private_key = os.environ.get("PRIVATE_KEY", "")
        if not private_key:
            raise ConfigurationError("Missing environment variable: PRIVATE_KEY")

        return cls(
            chains=chains,
            private_key=private_key,
            polymer_api_key=os.environ.get("POLYMER_API_KEY", ""),
            polymer_api_url=os.environ.get("POLYMER_API_URL", DEFAULT_POLYMER_API_URL),
            settings=RelaySettings.from_env(),
        )

    def log_config(self) -> None:
        """Log the configuration in a readable format, hiding secrets."""
        logger.info("=" * 60)
        logger.info("Polymer Relayer Configuration")
        logger.info("=" * 60)

        for chain in self.chains:
            logger.info(f"Chain {chain.name}:")
            logger.info(f"  Chain ID: {chain.chain_id}")
            logger.info(f"  RPC URL: {chain.rpc_url}")
            logger.info(f"  Contract: {chain.contract_address}")

        logger.info("Proof Service:")
        logger.info(f"  API URL: {self.polymer_api_url}")
        logger.info(f"  API Key: {'[SET]' if self.polymer_api_key else '[NOT SET]'}")

        logger.info("Relay Settings:")
        logger.info(f"  First Proof Poll: {self.settings.proof_initial_delay}s")
        logger.info(f"  Proof Poll Interval: {self.settings.proof_poll_interval}s")
        logger.info(f"  Proof Max Attempts: {self.settings.proof_max_attempts}")
        logger.info(f"  RPC Timeout: {self.settings.rpc_timeout}s")
        logger.info(f"  Confirmation Timeout: {self.settings.confirmation_timeout}s")
        logger.info(f"  Gas Multiplier: {self.settings.gas_multiplier}")
        logger.info(f"  Max Block Range: {self.settings.max_block_range}")
        logger.info(f"  Private Key: {'[SET]' if self.private_key else '[NOT SET]'}")
        logger.info("=" * 60)
