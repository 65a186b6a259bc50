"""
Chain listener for ValueSet events.

This module binds one source chain to its event subscription and turns each
delivered ValueSet log into a completed or failed relay attempt: deduplicate,
obtain a Polymer proof, submit it to the destination chain.
"""

import logging
from collections.abc import Iterable, Mapping
from datetime import datetime, timezone
from typing import Any

from web3 import Web3
from web3.types import EventData

from .config import ChainConfig, RelaySettings
from .exceptions import ConfigurationError, RelayError, SubmissionError
from .models import CrossChainEvent, EventIdentity, RelayOutcome, normalize_hex
from .proof_broker import ProofBroker
from .registry import DuplicateSuppressionRegistry
from .relay_submitter import RelaySubmitter
from .utils.chain_client import ChainClient
from .utils.event_subscription import EventSubscription

logger = logging.getLogger(__name__)


class ChainListener:
    """Relays ValueSet events emitted on one source chain."""

    EVENT_NAME = "ValueSet"

    def __init__(
        self,
        config: ChainConfig,
        chains: Iterable[ChainConfig],
        proof_broker: ProofBroker,
        submitter: RelaySubmitter,
        settings: RelaySettings | None = None,
        client: ChainClient | None = None,
        registry: DuplicateSuppressionRegistry | None = None,
    ) -> None:
        """
        Initialize the listener.

        Args:
            config: Source chain this listener watches
            chains: Every activated chain, used to resolve destinations
            proof_broker: Shared proof broker
            submitter: Shared relay submitter
            settings: Relay settings (defaults when omitted)
            client: Source chain client (created from config when omitted)
            registry: Duplicate suppression registry (one per listener)
        """
        self.config = config
        self.settings = settings or RelaySettings()
        self.destinations: dict[int, ChainConfig] = {chain.chain_id: chain for chain in chains}
        self.proof_broker = proof_broker
        self.submitter = submitter
        self.client = client or ChainClient(config, rpc_timeout=self.settings.rpc_timeout)
        self.registry = registry or DuplicateSuppressionRegistry(self.settings.max_tracked_events)
        self.subscription: EventSubscription | None = None

        self.relayed_count = 0
        self.failed_count = 0

    @property
    def name(self) -> str:
        return self.config.name

    def resolve_destination(self, chain_id: int) -> ChainConfig:
        """
        Find the configuration of a destination chain.

        Raises:
            ConfigurationError: If no activated chain has that ID
        """
        if (chain := self.destinations.get(chain_id)) is None:
            raise ConfigurationError(f"No configuration found for destination chain ID: {chain_id}")
        return chain

    async def start(self) -> None:
        """Subscribe to ValueSet events. Callbacks run for the process lifetime."""
        logger.info(f">  Starting listener for {self.name}...")
        logger.info(f">  Contract address: {self.config.contract_address}")
        logger.info(f">  Chain ID: {self.config.chain_id}")

        self.subscription = EventSubscription(
            self.client,
            event_name=self.EVENT_NAME,
            polling_interval=self.settings.polling_interval,
            max_block_range=self.settings.max_block_range,
        )
        head = await self.subscription.start(self.handle_event)
        logger.info(f">  Current block number: {head}")

    async def stop(self) -> None:
        if self.subscription:
            await self.subscription.stop()

    async def build_event(self, log: EventData) -> CrossChainEvent:
        """
        Decode a ValueSet log and resolve its position in the block.

        The position comes from the log's transactionIndex, falling back to the
        transaction receipt when the node omits it.
        """
        args: Mapping[str, Any] = log['args']
        identity = EventIdentity.from_log(log)

        position = log.get('transactionIndex')
        if position is None:
            receipt = await self.client.get_transaction_receipt(identity.transaction_hash)
            position = receipt['transactionIndex']

        block_number = int(log['blockNumber'])
        block = await self.client.get_block(block_number)
        timestamp = block.get('timestamp') if block else None

        return CrossChainEvent(
            sender=args['sender'],
            key=args['key'],
            value=bytes(args['value']),
            destination_chain_id=int(args['destinationChainId']),
            nonce=int(args['nonce']),
            hashed_key=normalize_hex(args['hashedKey']),
            source_chain_id=self.config.chain_id,
            block_number=block_number,
            block_hash=identity.block_hash,
            transaction_hash=identity.transaction_hash,
            log_index=identity.log_index,
            position_in_block=int(position),
            block_timestamp=int(timestamp) if timestamp is not None else None,
        )

    def _log_event(self, event: CrossChainEvent) -> None:
        logger.info(f"🔔 New ValueSet event detected on {self.name}:")
        logger.info(f">  Sender: {event.sender}")
        logger.info(f">  Key: {event.key}")
        logger.info(f">  Value (bytes): {Web3.to_hex(event.value)}")
        logger.info(f">  Value (utf8): {event.value_text}")
        logger.info(f">  Destination Chain ID: {event.destination_chain_id}")
        logger.info(f">  Nonce: {event.nonce}")
        logger.info(f">  HashedKey: {event.hashed_key}")
        logger.info(f">  Block Number: {event.block_number}")
        logger.info(f">  Block Hash: {event.block_hash}")
        logger.info(f">  Transaction Hash: {event.transaction_hash}")
        logger.info(f">  Log Index: {event.log_index}")
        logger.info(f">  Position in Block: {event.position_in_block}")
        if event.block_timestamp is not None:
            block_time = datetime.fromtimestamp(event.block_timestamp, tz=timezone.utc)
            logger.info(f">  Block Time: {block_time.isoformat()}")

    async def relay(self, event: CrossChainEvent) -> RelayOutcome:
        """
        Run the relay pipeline for one event.

        The destination is resolved before any network call.

        Raises:
            ConfigurationError: If the destination chain is not configured
            ProofRequestError: If the proof service rejects the request
            ProofTimeoutError: If the proof is never ready
            SubmissionError: If the destination transaction fails
        """
        destination = self.resolve_destination(event.destination_chain_id)

        logger.info(f"📤 Relaying {event} from {self.name} to {destination.name}")
        proof = await self.proof_broker.obtain_proof(
            self.config.chain_id,
            destination.chain_id,
            event.block_number,
            event.position_in_block,
        )

        receipt = await self.submitter.submit(destination, proof)
        return RelayOutcome(
            identity=event.identity,
            destination_chain_id=destination.chain_id,
            transaction_hash=receipt.transaction_hash,
            gas_used=receipt.gas_used,
        )

    async def handle_event(self, log: EventData) -> RelayOutcome | None:
        """
        Subscription callback for one ValueSet log.

        Claims the event identity before doing any work, so concurrent
        deliveries of the same log produce at most one relay attempt. The
        identity is marked completed only after the destination transaction is
        confirmed; any failure releases it so a redelivery is retried.

        Returns:
            None if the event was already in flight or completed, otherwise the
            RelayOutcome of this attempt
        """
        try:
            identity = EventIdentity.from_log(log)
        except (ValueError, TypeError) as e:
            logger.error(f"Dropping malformed log on {self.name}: {e}")
            return None

        if not self.registry.try_begin(identity):
            logger.debug(f"Skipping duplicate event {identity} on {self.name}")
            return None

        destination_chain_id: int | None = None
        outcome: RelayOutcome | None = None
        try:
            destination_chain_id = int(log['args']['destinationChainId'])
            # fail fast, before touching any RPC endpoint
            self.resolve_destination(destination_chain_id)
            event = await self.build_event(log)
            self._log_event(event)
            outcome = await self.relay(event)
            logger.info(
                f"✅ Relayed event {identity} to chain {destination_chain_id}: "
                f"{outcome.transaction_hash} (gas used {outcome.gas_used})"
            )
        except RelayError as e:
            if isinstance(e, SubmissionError) and e.sent:
                logger.warning(
                    f"Destination state for event {identity} is ambiguous; "
                    f"transaction {e.transaction_hash or '(unknown hash)'} may still be pending"
                )
            logger.error(f"❌ Error handling ValueSet event {identity} on {self.name}: {e}")
            outcome = RelayOutcome(identity, destination_chain_id, error=f"{type(e).__name__}: {e}")
        except Exception as e:
            logger.error(f"❌ Error processing event {identity} on {self.name}: {e}", exc_info=True)
            outcome = RelayOutcome(identity, destination_chain_id, error=f"{type(e).__name__}: {e}")
        finally:
            if outcome is not None and outcome.succeeded:
                self.registry.complete(identity)
                self.relayed_count += 1
            else:
                self.registry.release(identity)
                self.failed_count += 1

        return outcome

    def get_stats(self) -> dict:
        """
        Get current listener statistics.

        Returns:
            Dictionary with relay counters and registry state
        """
        return {
            'chain': self.name,
            'relayed': self.relayed_count,
            'failed': self.failed_count,
            **self.registry.get_stats(),
        }
