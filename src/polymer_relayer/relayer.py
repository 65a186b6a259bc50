"""
Polymer relayer process.

This module contains the main relayer service that starts one chain listener
per activated chain and keeps them running for the process lifetime.
"""

import asyncio
import logging
from collections.abc import Iterable

from eth_account import Account
from eth_account.signers.local import LocalAccount

from .chain_listener import ChainListener
from .config import RelayerConfig
from .proof_broker import ProofBroker
from .relay_submitter import RelaySubmitter

logger = logging.getLogger(__name__)


class PolymerRelayer:
    """
    Main relayer service that orchestrates the chain listeners.

    This class focuses on lifecycle management; relaying happens inside the
    listeners' subscription callbacks.
    """

    def __init__(
        self,
        config: RelayerConfig,
        proof_broker: ProofBroker | None = None,
        submitter: RelaySubmitter | None = None,
        listeners: list[ChainListener] | None = None,
    ) -> None:
        """
        Initialize the relayer.

        Args:
            config: Relayer configuration
            proof_broker: Shared proof broker (built from config when omitted)
            submitter: Shared relay submitter (built from config when omitted)
            listeners: Pre-built listeners (one per activated chain when omitted)
        """
        self.config = config
        settings = config.settings
        self.running = False

        # One signing identity for every destination chain
        self.account: LocalAccount = Account.from_key(config.private_key)

        self.proof_broker = proof_broker or ProofBroker(
            api_url=config.polymer_api_url,
            api_key=config.polymer_api_key,
            initial_delay=settings.proof_initial_delay,
            poll_interval=settings.proof_poll_interval,
            max_attempts=settings.proof_max_attempts,
            request_timeout=settings.request_timeout,
        )
        self.submitter = submitter or RelaySubmitter(
            account=self.account,
            gas_multiplier=settings.gas_multiplier,
            rpc_timeout=settings.rpc_timeout,
            confirmation_timeout=settings.confirmation_timeout,
        )
        self.listeners = listeners if listeners is not None else [
            ChainListener(
                config=chain,
                chains=config.chains,
                proof_broker=self.proof_broker,
                submitter=self.submitter,
                settings=settings,
            )
            for chain in config.chains
        ]

        self.shutdown_event = asyncio.Event()

    @classmethod
    def from_env(cls, activated_chains: Iterable[str] | None = None) -> "PolymerRelayer":
        """
        Create a PolymerRelayer instance from environment variables.

        Raises:
            ConfigurationError: If required environment variables are missing
        """
        config = RelayerConfig.from_env(activated_chains)
        config.log_config()
        return cls(config)

    async def start_listeners(self) -> None:
        """Start listeners one after another. Any startup failure is fatal."""
        logger.info("🔄 Initializing chain listeners...")
        logger.info(f">  Using wallet address (Pay for cross-chain gas): {self.account.address}")
        for listener in self.listeners:
            logger.info(f"🎯 Setting up listener for {listener.name}...")
            await listener.start()
        logger.info("✅ All listeners started successfully")

    def _check_task_health(self) -> bool:
        """Check if any subscription task has died."""
        for listener in self.listeners:
            subscription = listener.subscription
            task = subscription.task if subscription else None
            if task is not None and task.done():
                if not task.cancelled() and (error := task.exception()):
                    logger.error(f"Subscription for {listener.name} failed: {error}", exc_info=error)
                else:
                    logger.error(f"Subscription for {listener.name} stopped unexpectedly")
                return False
        return True

    async def _periodic_status_logger(self) -> None:
        """Log status periodically while running."""
        while self.running:
            await asyncio.sleep(self.config.settings.status_log_interval)
            for listener in self.listeners:
                stats = listener.get_stats()
                logger.info(
                    f"Status {stats['chain']}: {stats['relayed']} relayed, "
                    f"{stats['failed']} failed, {stats['in_flight']} in flight"
                )

    async def _cleanup(self, status_task: asyncio.Task | None) -> None:
        if status_task and not status_task.done():
            status_task.cancel()
            try:
                await status_task
            except asyncio.CancelledError:
                pass  # Expected when cancelling
        for listener in self.listeners:
            try:
                await listener.stop()
            except Exception as e:
                logger.warning(f"Error stopping listener for {listener.name}: {e}")
        await self.proof_broker.aclose()

    async def run(self) -> None:
        """Main loop: start every listener, then idle until stopped."""
        self.running = True
        logger.info("Polymer Relayer starting...")

        status_task: asyncio.Task | None = None
        try:
            await self.start_listeners()
            status_task = asyncio.create_task(self._periodic_status_logger())
            logger.info("👀 Watching for events...")

            while self.running:
                try:
                    await asyncio.wait_for(self.shutdown_event.wait(), timeout=1.0)
                    break  # Shutdown requested
                except asyncio.TimeoutError:
                    pass

                if not self._check_task_health():
                    raise RuntimeError("Critical subscription failure, shutting down")

        except Exception as e:
            logger.error(f"Error in main loop: {e}", exc_info=True)
            raise
        finally:
            self.running = False
            await self._cleanup(status_task)
            logger.info("Polymer Relayer stopped")

    def stop(self) -> None:
        """Stop the relayer service."""
        self.running = False
        self.shutdown_event.set()
