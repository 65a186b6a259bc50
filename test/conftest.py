"""Shared fixtures for the Polymer relayer tests."""

from unittest.mock import AsyncMock, MagicMock

import pytest
from eth_account import Account
from web3.types import HexBytes

from polymer_relayer.config import ChainConfig, RelaySettings

OPTIMISM_CONTRACT = "0x85bfe05492afc3d04ff3b2ca6771acf6f853d90d"
BASE_CONTRACT = "0x1f54b7af3a462aabed01d5910a3e5911e76d4b51"
SENDER = "0x9f983f759d511d0f404582b0bdc1994edb5db856"
TEST_PRIVATE_KEY = "0x" + "11" * 32


@pytest.fixture
def optimism_chain():
    return ChainConfig(
        name="Optimism Sepolia",
        chain_id=11155420,
        rpc_url="https://sepolia.optimism.io",
        contract_address=OPTIMISM_CONTRACT,
    )


@pytest.fixture
def base_chain():
    return ChainConfig(
        name="Base Sepolia",
        chain_id=84532,
        rpc_url="https://sepolia.base.org",
        contract_address=BASE_CONTRACT,
    )


@pytest.fixture
def chains(optimism_chain, base_chain):
    return (optimism_chain, base_chain)


@pytest.fixture
def settings():
    return RelaySettings(polling_interval=3600)


@pytest.fixture
def account():
    return Account.from_key(TEST_PRIVATE_KEY)


@pytest.fixture
def make_log():
    """Factory for decoded ValueSet logs as web3 delivers them."""

    def _make_log(
        tx_hash: str = "0x" + "aa" * 32,
        block_hash: str = "0x" + "bb" * 32,
        log_index: int = 0,
        destination_chain_id: int = 84532,
        block_number: int = 100,
        transaction_index: int | None = 3,
        nonce: int = 1,
        value: bytes = b"hello",
    ) -> dict:
        log = {
            'args': {
                'sender': SENDER,
                'key': 'greeting',
                'value': value,
                'destinationChainId': destination_chain_id,
                'nonce': nonce,
                'hashedKey': HexBytes(b'\x11' * 32),
            },
            'event': 'ValueSet',
            'address': OPTIMISM_CONTRACT,
            'blockHash': HexBytes(block_hash),
            'blockNumber': block_number,
            'transactionHash': HexBytes(tx_hash),
            'logIndex': log_index,
        }
        if transaction_index is not None:
            log['transactionIndex'] = transaction_index
        return log

    return _make_log


@pytest.fixture
def source_client(optimism_chain):
    """Mock ChainClient for the source chain."""
    client = MagicMock()
    client.chain = optimism_chain
    client.get_block_number = AsyncMock(return_value=100)
    client.get_block = AsyncMock(return_value={'number': 100, 'timestamp': 1_700_000_000})
    client.get_transaction_receipt = AsyncMock(return_value={'transactionIndex': 7})
    client.get_logs = AsyncMock(return_value=[])
    return client


@pytest.fixture
def destination_client(base_chain):
    """Mock ChainClient for the destination chain."""
    client = MagicMock()
    client.chain = base_chain
    client.estimate_gas = AsyncMock(return_value=120_000)
    client.transact = AsyncMock(return_value=HexBytes(b'\x12' * 32))
    client.wait_for_receipt = AsyncMock(return_value={
        'status': 1,
        'gasUsed': 98_765,
        'blockNumber': 555,
    })
    return client
