import asyncio
import json
import logging
from collections.abc import Awaitable
from pathlib import Path
from typing import Any, TypeVar

from eth_account.signers.local import LocalAccount
from web3 import AsyncWeb3
from web3.middleware import SignAndSendRawMiddlewareBuilder
from web3.types import BlockData, EventData, HexBytes, TxReceipt

from ..config import ChainConfig

logger = logging.getLogger(__name__)

T = TypeVar("T")

CONTRACT_NAME = "CrossChainStore"


def get_contract_abi(contract_name: str = CONTRACT_NAME) -> list:
    """Fetches ABI of the given contract from the packaged abi folder"""
    contract_path = (Path(__file__).parent.parent / "abi" / f"{contract_name}.json").resolve()

    with contract_path.open() as file:
        contract_data = json.load(file)

    return contract_data["abi"]


class ChainClient:
    """
    Thin async wrapper around one chain's JSON-RPC endpoint and its
    CrossChainStore contract.

    Every RPC call is bounded by rpc_timeout. When an account is given, the
    signing middleware is installed so contract transactions are signed
    locally and sent raw.
    """

    def __init__(
        self,
        chain: ChainConfig,
        account: LocalAccount | None = None,
        rpc_timeout: float = 30.0,
        abi: list | None = None,
    ) -> None:
        """
        Initialize the ChainClient.

        Args:
            chain: Chain to connect to
            account: Signing account for transactions (optional for read-only use)
            rpc_timeout: Upper bound in seconds for each RPC call
            abi: Contract ABI, defaults to the packaged CrossChainStore ABI
        """
        self.chain = chain
        self.rpc_timeout = rpc_timeout
        self.account = account
        self.w3 = self.setup_web3(account)
        self.contract = self.w3.eth.contract(
            address=chain.contract_address,
            abi=abi if abi is not None else get_contract_abi(),
        )

    def setup_web3(self, account: LocalAccount | None) -> AsyncWeb3:
        provider = AsyncWeb3.AsyncHTTPProvider(
            self.chain.rpc_url,
            request_kwargs={'timeout': self.rpc_timeout},
        )
        w3 = AsyncWeb3(provider)
        if account is not None:
            w3.middleware_onion.add(SignAndSendRawMiddlewareBuilder.build(account))
            w3.eth.default_account = account.address
        return w3

    async def _call(self, awaitable: Awaitable[T], what: str) -> T:
        try:
            return await asyncio.wait_for(awaitable, timeout=self.rpc_timeout)
        except asyncio.TimeoutError:
            raise TimeoutError(
                f"{what} on {self.chain.name} timed out after {self.rpc_timeout}s"
            ) from None

    async def get_block_number(self) -> int:
        return await self._call(self.w3.eth.block_number, "eth_blockNumber")

    async def get_block(self, block_number: int) -> BlockData:
        return await self._call(self.w3.eth.get_block(block_number), "eth_getBlockByNumber")

    async def get_transaction_receipt(self, tx_hash: Any) -> TxReceipt:
        return await self._call(
            self.w3.eth.get_transaction_receipt(tx_hash), "eth_getTransactionReceipt"
        )

    async def get_logs(self, event_name: str, from_block: int, to_block: int) -> list[EventData]:
        """Fetch decoded contract events in an inclusive block range."""
        event_obj = getattr(self.contract.events, event_name)
        logs = await self._call(
            event_obj.get_logs(from_block=from_block, to_block=to_block),
            f"get_logs({event_name})",
        )
        return list(logs)

    async def estimate_gas(self, function_name: str, *args: Any) -> int:
        """Estimate gas for a contract write, raising if the call would revert."""
        function = getattr(self.contract.functions, function_name)(*args)
        tx_params = {'from': self.account.address} if self.account else {}
        return await self._call(function.estimate_gas(tx_params), f"estimate_gas({function_name})")

    async def transact(self, function_name: str, *args: Any, gas: int) -> HexBytes:
        """Sign and send a contract write with an explicit gas limit."""
        function = getattr(self.contract.functions, function_name)(*args)
        return await self._call(function.transact({'gas': gas}), f"transact({function_name})")

    async def wait_for_receipt(self, tx_hash: HexBytes, timeout: float) -> TxReceipt:
        """Wait for one block of inclusion."""
        return await self.w3.eth.wait_for_transaction_receipt(tx_hash, timeout=timeout)
