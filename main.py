#!/usr/bin/env python3
"""Entry point for the Polymer relayer service.

Loads configuration from the environment (and a .env file when present),
then runs one listener per activated chain until interrupted.
"""

import argparse
import asyncio
import logging
import os
import sys

from dotenv import load_dotenv


# Configure logging before any other imports create loggers
def setup_logging(level: str = "INFO") -> None:
    """Configure logging for the application.

    Args:
        level: Logging level as string (DEBUG, INFO, WARNING, ERROR, CRITICAL)
    """
    log_level: int = getattr(logging, level.upper(), logging.INFO)
    logging.basicConfig(
        level=log_level,
        format='%(asctime)s - %(name)s - %(levelname)s - %(message)s'
    )


# Get logger for this module
logger = logging.getLogger(__name__)

from polymer_relayer.exceptions import ConfigurationError
from polymer_relayer.relayer import PolymerRelayer


async def main() -> None:
    """Main entry point for the Polymer relayer.

    Raises:
        SystemExit: On configuration or runtime errors
    """
    load_dotenv()

    parser: argparse.ArgumentParser = argparse.ArgumentParser(
        description="Polymer Relayer - relay ValueSet events between chains",
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog="""Environment Variables:
  RELAYER_ACTIVATED_CHAINS - Comma-separated chain keys (e.g. optimism-sepolia,base-sepolia)
  <CHAIN>_RPC              - RPC endpoint per chain (e.g. BASE_SEPOLIA_RPC)
  <CHAIN>_CONTRACT_ADDRESS - CrossChainStore address per chain
  PRIVATE_KEY              - Key paying for cross-chain gas
  POLYMER_API_KEY          - Polymer proof API key
  POLYMER_API_URL          - Proof API endpoint (default: Polymer Sepolia)
  LOG_LEVEL                - Logging level (can be overridden with --log-level)
        """
    )
    parser.add_argument(
        "--chains",
        default=None,
        help="Comma-separated chain keys, overrides RELAYER_ACTIVATED_CHAINS"
    )
    parser.add_argument(
        "--log-level",
        default=os.environ.get("LOG_LEVEL", "INFO"),
        choices=["DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"],
        help="Set the logging level (default: INFO)"
    )
    args: argparse.Namespace = parser.parse_args()

    setup_logging(args.log_level)
    logger.info("=== Polymer Relayer Starting ===")

    activated = args.chains.split(",") if args.chains else None

    try:
        relayer = PolymerRelayer.from_env(activated_chains=activated)
    except ConfigurationError as e:
        logger.error(f"Configuration Error: {e}")
        logger.error("Please check your environment variables:")
        logger.error("  - RELAYER_ACTIVATED_CHAINS: chains to relay between")
        logger.error("  - <CHAIN>_RPC and <CHAIN>_CONTRACT_ADDRESS for each activated chain")
        logger.error("  - PRIVATE_KEY: key paying for cross-chain gas")
        logger.error("  - POLYMER_API_KEY: Polymer proof API key")
        sys.exit(1)

    try:
        await relayer.run()
    except Exception as e:
        logger.error(f"Fatal Error: {e}", exc_info=True)
        sys.exit(1)


if __name__ == "__main__":
    try:
        asyncio.run(main())
    except KeyboardInterrupt:
        logger.info("Received interrupt signal, shutting down...")
        sys.exit(0)
