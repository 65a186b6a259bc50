#!/usr/bin/env python3
"""Proof submission to the destination chain.

This module estimates gas for CrossChainStore.setValueFromSource, sends the
signed transaction and waits for it to be included.
"""

import asyncio
import logging
import math
from collections.abc import Callable

from eth_account.signers.local import LocalAccount
from web3 import Web3
from web3.types import HexBytes, TxReceipt

from .config import ChainConfig
from .exceptions import SubmissionError
from .models import SubmissionReceipt
from .utils.chain_client import ChainClient

logger = logging.getLogger(__name__)

ClientFactory = Callable[[ChainConfig], ChainClient]


class RelaySubmitter:
    """Applies proofs to destination CrossChainStore contracts."""

    RELAY_FUNCTION = "setValueFromSource"
    # The event-to-call mapping always targets log index 0 of the proven receipt
    RELAY_LOG_INDEX = 0

    def __init__(
        self,
        account: LocalAccount,
        gas_multiplier: float = 1.0,
        rpc_timeout: float = 30.0,
        confirmation_timeout: float = 120.0,
        client_factory: ClientFactory | None = None,
    ) -> None:
        """
        Initialize the RelaySubmitter.

        Args:
            account: Signing account shared across destination chains
            gas_multiplier: Factor applied to the gas estimate (1.0 = exact estimate)
            rpc_timeout: Upper bound for each RPC call
            confirmation_timeout: Upper bound for waiting on inclusion
            client_factory: Builds the ChainClient for a destination chain
        """
        self.account = account
        self.gas_multiplier = gas_multiplier
        self.rpc_timeout = rpc_timeout
        self.confirmation_timeout = confirmation_timeout
        self._client_factory = client_factory or self._default_client
        self._clients: dict[int, ChainClient] = {}
        # One signer is shared by every listener; dispatches to the same chain
        # must not race for the pending nonce
        self._dispatch_locks: dict[int, asyncio.Lock] = {}

    def _default_client(self, chain: ChainConfig) -> ChainClient:
        return ChainClient(chain, account=self.account, rpc_timeout=self.rpc_timeout)

    def client_for(self, chain: ChainConfig) -> ChainClient:
        """Return the cached client for a destination chain, creating it on first use."""
        if (client := self._clients.get(chain.chain_id)) is None:
            client = self._client_factory(chain)
            self._clients[chain.chain_id] = client
        return client

    def dispatch_lock(self, chain: ChainConfig) -> asyncio.Lock:
        if (lock := self._dispatch_locks.get(chain.chain_id)) is None:
            lock = asyncio.Lock()
            self._dispatch_locks[chain.chain_id] = lock
        return lock

    def gas_limit(self, estimate: int) -> int:
        return math.ceil(estimate * self.gas_multiplier)

    async def submit(self, destination: ChainConfig, proof: bytes) -> SubmissionReceipt:
        """
        Submit a proof to the destination chain and wait for confirmation.

        Args:
            destination: Destination chain configuration
            proof: Decoded proof bytes

        Returns:
            SubmissionReceipt of the confirmed transaction

        Raises:
            SubmissionError: If estimation, dispatch or confirmation fails
        """
        client = self.client_for(destination)
        logger.info(f"Submitting proof to {destination.name} ({len(proof)} bytes)...")

        try:
            estimated_gas = await client.estimate_gas(self.RELAY_FUNCTION, self.RELAY_LOG_INDEX, proof)
        except Exception as e:
            raise SubmissionError(
                f"Gas estimation failed on {destination.name}: {e}", sent=False
            ) from e

        gas_limit = self.gas_limit(estimated_gas)
        logger.info(f"Estimated gas: {estimated_gas}, gas limit: {gas_limit}")

        try:
            async with self.dispatch_lock(destination):
                tx_hash: HexBytes = await client.transact(
                    self.RELAY_FUNCTION, self.RELAY_LOG_INDEX, proof, gas=gas_limit
                )
        except Exception as e:
            # The node may have accepted the transaction before the error surfaced
            raise SubmissionError(
                f"Transaction dispatch failed on {destination.name}: {e}", sent=True
            ) from e

        tx_hex = Web3.to_hex(tx_hash)
        logger.info(f"⏳ Transaction sent: {tx_hex}")

        try:
            receipt: TxReceipt = await client.wait_for_receipt(tx_hash, timeout=self.confirmation_timeout)
        except Exception as e:
            raise SubmissionError(
                f"Confirmation of {tx_hex} on {destination.name} failed: {e}",
                sent=True,
                transaction_hash=tx_hex,
            ) from e

        if (status := receipt.get('status', 0)) != 1:
            raise SubmissionError(
                f"Transaction {tx_hex} reverted on {destination.name} with status={status}",
                sent=True,
                transaction_hash=tx_hex,
            )

        gas_used = int(receipt['gasUsed'])
        logger.info(f"✓ Transaction confirmed in block {receipt['blockNumber']}! Gas used: {gas_used}")
        return SubmissionReceipt(
            transaction_hash=tx_hex,
            gas_used=gas_used,
            block_number=int(receipt['blockNumber']),
        )
