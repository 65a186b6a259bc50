"""
Shared data models for the Polymer relayer.

This module contains the immutable event types and the proof job record used
across the listener, broker and submitter.
"""

from collections.abc import Mapping
from dataclasses import dataclass
from enum import Enum
from typing import Any

from web3 import Web3


def normalize_hex(value: Any) -> str:
    """Return a lowercase 0x-prefixed hex string for bytes or hex text."""
    match value:
        case bytes() | bytearray():
            return Web3.to_hex(bytes(value))
        case str() as text:
            text = text.lower()
            return text if text.startswith("0x") else f"0x{text}"
        case _:
            raise ValueError(f"Expected bytes or hex string, got {type(value).__name__}")


@dataclass(frozen=True, slots=True)
class EventIdentity:
    """Uniquely identifies one log emission.

    Two deliveries with equal identity are the same logical event, even if one
    carries HexBytes and the other hex text.
    """

    block_hash: str
    transaction_hash: str
    log_index: int

    @classmethod
    def from_log(cls, log: Mapping[str, Any]) -> "EventIdentity":
        """Build the identity from a decoded log.

        Raises:
            ValueError: If the log lacks any of its coordinates
        """
        block_hash = log.get("blockHash")
        tx_hash = log.get("transactionHash")
        log_index = log.get("logIndex")
        if block_hash is None or tx_hash is None or log_index is None:
            raise ValueError("Log is missing blockHash, transactionHash or logIndex")
        return cls(
            block_hash=normalize_hex(block_hash),
            transaction_hash=normalize_hex(tx_hash),
            log_index=int(log_index),
        )

    def __str__(self) -> str:
        return f"{self.block_hash[:10]}-{self.transaction_hash[:10]}-{self.log_index}"


@dataclass(frozen=True, slots=True)
class CrossChainEvent:
    """A ValueSet event observed on a source chain.

    Attributes:
        sender: Address that called setValue
        key: Plain-text key
        value: Raw value bytes
        destination_chain_id: Chain the value should be mirrored to
        nonce: Contract nonce of the emission
        hashed_key: keccak256 of the key (hex)
        source_chain_id: Chain the event was emitted on
        block_number: Block containing the event
        block_hash: Hash of that block
        transaction_hash: Transaction that emitted the event
        log_index: Log index within the block
        position_in_block: Index of the transaction within its block
        block_timestamp: Block time in Unix seconds, when known
    """

    sender: str
    key: str
    value: bytes
    destination_chain_id: int
    nonce: int
    hashed_key: str
    source_chain_id: int
    block_number: int
    block_hash: str
    transaction_hash: str
    log_index: int
    position_in_block: int
    block_timestamp: int | None = None

    @property
    def identity(self) -> EventIdentity:
        return EventIdentity(self.block_hash, self.transaction_hash, self.log_index)

    @property
    def value_text(self) -> str:
        return self.value.decode("utf-8", errors="replace")

    def __str__(self) -> str:
        return (
            f"CrossChainEvent(src={self.source_chain_id}, dst={self.destination_chain_id}, "
            f"block={self.block_number}, tx={self.transaction_hash[:10]}..., nonce={self.nonce})"
        )


class ProofStatus(Enum):
    """Lifecycle of a proof job as seen by the broker."""
    REQUESTED = "requested"
    PENDING = "pending"
    READY = "ready"
    FAILED = "failed"


@dataclass(slots=True)
class ProofJob:
    """Handle for an in-progress proof computation.

    Created on request acceptance and mutated only by the broker's poll loop.
    """

    job_id: str
    source_chain_id: int
    destination_chain_id: int
    block_number: int
    position_in_block: int
    status: ProofStatus = ProofStatus.REQUESTED
    attempts: int = 0
    last_status: str | None = None
    proof: bytes | None = None


@dataclass(frozen=True, slots=True)
class SubmissionReceipt:
    """Confirmed destination-chain transaction."""
    transaction_hash: str
    gas_used: int
    block_number: int


@dataclass(frozen=True, slots=True)
class RelayOutcome:
    """Result of one relay attempt, used only as a success/failure signal."""

    identity: EventIdentity
    destination_chain_id: int | None
    transaction_hash: str | None = None
    gas_used: int | None = None
    error: str | None = None

    @property
    def succeeded(self) -> bool:
        return self.error is None and self.transaction_hash is not None
