#!/usr/bin/env python3
"""Tests for the configuration module."""

import pytest
from web3 import Web3

from polymer_relayer.config import (
    DEFAULT_POLYMER_API_URL,
    ChainConfig,
    RelayerConfig,
    RelaySettings,
    env_prefix,
)
from polymer_relayer.exceptions import ConfigurationError

from conftest import BASE_CONTRACT, OPTIMISM_CONTRACT, TEST_PRIVATE_KEY


@pytest.fixture
def relayer_env(monkeypatch):
    """Environment for two activated chains."""
    for name in ("RELAYER_ACTIVATED_CHAINS", "POLYMER_API_URL", "GAS_MULTIPLIER", "PROOF_MAX_ATTEMPTS"):
        monkeypatch.delenv(name, raising=False)
    monkeypatch.setenv("RELAYER_ACTIVATED_CHAINS", "optimism-sepolia,base-sepolia")
    monkeypatch.setenv("OPTIMISM_SEPOLIA_RPC", "https://sepolia.optimism.io")
    monkeypatch.setenv("OPTIMISM_SEPOLIA_CONTRACT_ADDRESS", OPTIMISM_CONTRACT)
    monkeypatch.setenv("BASE_SEPOLIA_RPC", "https://sepolia.base.org")
    monkeypatch.setenv("BASE_SEPOLIA_CONTRACT_ADDRESS", BASE_CONTRACT)
    monkeypatch.setenv("PRIVATE_KEY", TEST_PRIVATE_KEY)
    monkeypatch.setenv("POLYMER_API_KEY", "test-api-key")
    return monkeypatch


class TestChainConfig:
    """Tests for ChainConfig."""

    def test_checksum_address_conversion(self):
        """Lowercase addresses are converted to checksum format."""
        config = ChainConfig(
            name="Optimism Sepolia",
            chain_id=11155420,
            rpc_url="https://sepolia.optimism.io",
            contract_address=OPTIMISM_CONTRACT,
        )
        assert config.contract_address == "0x85BfE05492aFC3D04Ff3B2ca6771ACF6f853d90d"

    def test_invalid_rpc_url_scheme(self):
        with pytest.raises(ConfigurationError, match="Invalid RPC URL scheme"):
            ChainConfig("Bad", 1, "ftp://invalid.scheme", OPTIMISM_CONTRACT)

    def test_missing_rpc_url(self):
        with pytest.raises(ConfigurationError, match="RPC URL is required"):
            ChainConfig("Bad", 1, "", OPTIMISM_CONTRACT)

    def test_invalid_contract_address(self):
        with pytest.raises(ConfigurationError, match="Invalid contract address"):
            ChainConfig("Bad", 1, "https://test.rpc", "invalid-address")

    def test_non_positive_chain_id(self):
        with pytest.raises(ConfigurationError, match="Chain ID must be positive"):
            ChainConfig("Bad", 0, "https://test.rpc", OPTIMISM_CONTRACT)

    def test_configuration_error_is_value_error(self):
        with pytest.raises(ValueError):
            ChainConfig("Bad", 1, "", OPTIMISM_CONTRACT)

    def test_immutable(self, optimism_chain):
        with pytest.raises(AttributeError):
            optimism_chain.chain_id = 1


class TestRelaySettings:
    """Tests for RelaySettings."""

    def test_defaults(self):
        settings = RelaySettings()
        assert settings.proof_initial_delay == 10.0
        assert settings.proof_poll_interval == 5.0
        assert settings.proof_max_attempts == 10
        assert settings.gas_multiplier == 1.0

    def test_gas_multiplier_below_one_rejected(self):
        with pytest.raises(ConfigurationError, match="Gas multiplier"):
            RelaySettings(gas_multiplier=0.9)

    def test_max_attempts_must_be_positive(self):
        with pytest.raises(ConfigurationError, match="max attempts"):
            RelaySettings(proof_max_attempts=0)

    def test_max_block_range_must_be_positive(self):
        with pytest.raises(ConfigurationError, match="Max block range"):
            RelaySettings(max_block_range=0)

    def test_env_overrides(self, monkeypatch):
        monkeypatch.setenv("GAS_MULTIPLIER", "1.25")
        monkeypatch.setenv("PROOF_MAX_ATTEMPTS", "4")
        monkeypatch.setenv("MAX_BLOCK_RANGE", "500")
        settings = RelaySettings.from_env()
        assert settings.max_block_range == 500
        assert settings.gas_multiplier == 1.25
        assert settings.proof_max_attempts == 4
        assert settings.proof_initial_delay == 10.0

    def test_invalid_env_override(self, monkeypatch):
        monkeypatch.setenv("PROOF_MAX_ATTEMPTS", "many")
        with pytest.raises(ConfigurationError, match="PROOF_MAX_ATTEMPTS"):
            RelaySettings.from_env()


class TestRelayerConfig:
    """Tests for RelayerConfig."""

    def test_env_prefix(self):
        assert env_prefix("base-sepolia") == "BASE_SEPOLIA"
        assert env_prefix(" optimism-sepolia ") == "OPTIMISM_SEPOLIA"

    def test_from_env(self, relayer_env):
        config = RelayerConfig.from_env()

        assert [chain.chain_id for chain in config.chains] == [11155420, 84532]
        assert config.chains[1].name == "Base Sepolia"
        assert config.chains[1].contract_address == Web3.to_checksum_address(BASE_CONTRACT)
        assert config.polymer_api_key == "test-api-key"
        assert config.polymer_api_url == DEFAULT_POLYMER_API_URL

    def test_explicit_activated_chains(self, relayer_env):
        config = RelayerConfig.from_env(["base-sepolia"])
        assert [chain.name for chain in config.chains] == ["Base Sepolia"]

    def test_no_activated_chains(self, relayer_env):
        relayer_env.setenv("RELAYER_ACTIVATED_CHAINS", "")
        with pytest.raises(ConfigurationError, match="No chains are activated"):
            RelayerConfig.from_env()

    def test_missing_rpc(self, relayer_env):
        relayer_env.delenv("BASE_SEPOLIA_RPC")
        with pytest.raises(ConfigurationError, match="BASE_SEPOLIA_RPC"):
            RelayerConfig.from_env()

    def test_missing_private_key(self, relayer_env):
        relayer_env.delenv("PRIVATE_KEY")
        with pytest.raises(ConfigurationError, match="PRIVATE_KEY"):
            RelayerConfig.from_env()

    def test_missing_api_key(self, relayer_env):
        relayer_env.delenv("POLYMER_API_KEY")
        with pytest.raises(ConfigurationError, match="POLYMER_API_KEY"):
            RelayerConfig.from_env()

    def test_unknown_chain_requires_chain_id(self, relayer_env):
        relayer_env.setenv("RELAYER_ACTIVATED_CHAINS", "my-devnet")
        relayer_env.setenv("MY_DEVNET_RPC", "http://localhost:8545")
        relayer_env.setenv("MY_DEVNET_CONTRACT_ADDRESS", OPTIMISM_CONTRACT)
        with pytest.raises(ConfigurationError, match="MY_DEVNET_CHAIN_ID"):
            RelayerConfig.from_env()

        relayer_env.setenv("MY_DEVNET_CHAIN_ID", "31337")
        config = RelayerConfig.from_env()
        assert config.chains[0].chain_id == 31337
        assert config.chains[0].name == "my-devnet"

    def test_duplicate_chain_ids_rejected(self, optimism_chain):
        with pytest.raises(ConfigurationError, match="Duplicate chain ID"):
            RelayerConfig(
                chains=(optimism_chain, optimism_chain),
                private_key=TEST_PRIVATE_KEY,
                polymer_api_key="key",
            )

    def test_invalid_private_key(self, chains):
        with pytest.raises(ConfigurationError, match="private key length"):
            RelayerConfig(chains=chains, private_key="0x1234", polymer_api_key="key")
        with pytest.raises(ConfigurationError, match="hexadecimal"):
            RelayerConfig(chains=chains, private_key="0x" + "zz" * 32, polymer_api_key="key")

    def test_log_config_hides_secrets(self, chains, caplog):
        config = RelayerConfig(chains=chains, private_key=TEST_PRIVATE_KEY, polymer_api_key="secret-key")
        with caplog.at_level("INFO"):
            config.log_config()
        assert "secret-key" not in caplog.text
        assert TEST_PRIVATE_KEY not in caplog.text
        assert "Base Sepolia" in caplog.text
