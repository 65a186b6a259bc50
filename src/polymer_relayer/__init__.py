"""
Polymer Relayer package.

Relays CrossChainStore ValueSet events between chains using Polymer
attestation proofs.
"""

from .chain_listener import ChainListener
from .config import ChainConfig, RelayerConfig, RelaySettings
from .exceptions import (
    ConfigurationError,
    ProofRequestError,
    ProofTimeoutError,
    RelayError,
    SubmissionError,
)
from .models import CrossChainEvent, EventIdentity, ProofJob, RelayOutcome
from .proof_broker import ProofBroker
from .registry import DuplicateSuppressionRegistry
from .relay_submitter import RelaySubmitter
from .relayer import PolymerRelayer

__all__ = [
    "ChainConfig",
    "ChainListener",
    "ConfigurationError",
    "CrossChainEvent",
    "DuplicateSuppressionRegistry",
    "EventIdentity",
    "PolymerRelayer",
    "ProofBroker",
    "ProofJob",
    "ProofRequestError",
    "ProofTimeoutError",
    "RelayError",
    "RelayOutcome",
    "RelaySettings",
    "RelaySubmitter",
    "RelayerConfig",
    "SubmissionError",
]
__version__ = "0.1.0"
