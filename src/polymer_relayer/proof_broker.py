"""
Proof acquisition from the Polymer proof API.

This module requests an attestation proof for a (source chain, destination
chain, block, position) coordinate and polls the API until the proof is ready
or the attempt ceiling is reached.
"""

import asyncio
import base64
import binascii
import itertools
import json
import logging
from collections.abc import Awaitable, Callable
from typing import Any

import httpx

from .exceptions import ProofRequestError, ProofTimeoutError
from .models import ProofJob, ProofStatus

logger = logging.getLogger(__name__)

StatusObserver = Callable[[ProofJob, str | None], None]


def poll_delay(attempt: int, initial_delay: float = 10.0, poll_interval: float = 5.0) -> float:
    """Seconds to wait before poll number `attempt` (0-based)."""
    return initial_delay if attempt == 0 else poll_interval


def decode_proof(encoded: str) -> bytes:
    """
    Decode the base64 proof returned by the proof API.

    Raises:
        ProofRequestError: If the payload is not valid base64
    """
    try:
        return base64.b64decode(encoded, validate=True)
    except (binascii.Error, ValueError, TypeError) as e:
        raise ProofRequestError(f"Proof is not valid base64: {e}") from e


class ProofBroker:
    """Client-side request/poll protocol against the proof API."""

    REQUEST_METHOD = "receipt_requestProof"
    QUERY_METHOD = "receipt_queryProof"

    def __init__(
        self,
        api_url: str,
        api_key: str,
        initial_delay: float = 10.0,
        poll_interval: float = 5.0,
        max_attempts: int = 10,
        request_timeout: float = 30.0,
        client: httpx.AsyncClient | None = None,
        sleep: Callable[[float], Awaitable[Any]] = asyncio.sleep,
        on_status: StatusObserver | None = None,
    ) -> None:
        """
        Initialize the ProofBroker.

        Args:
            api_url: Proof API endpoint
            api_key: Bearer token for the proof API
            initial_delay: Seconds before the first poll
            poll_interval: Seconds between subsequent polls
            max_attempts: Polls before giving up with ProofTimeoutError
            request_timeout: HTTP timeout for each call
            client: Shared HTTP client (created when omitted)
            sleep: Coroutine used between polls
            on_status: Observer notified with each poll's status string
        """
        self.api_url = api_url
        self.initial_delay = initial_delay
        self.poll_interval = poll_interval
        self.max_attempts = max_attempts
        self.on_status = on_status
        self._sleep = sleep
        self._ids = itertools.count(1)
        self.client = client or httpx.AsyncClient(timeout=request_timeout)
        self._headers = {"Authorization": f"Bearer {api_key}"}

    async def __aenter__(self) -> "ProofBroker":
        return self

    async def __aexit__(self, *exc_info: Any) -> None:
        await self.aclose()

    async def aclose(self) -> None:
        await self.client.aclose()

    async def _rpc(self, method: str, params: list[Any]) -> Any:
        payload = {
            "jsonrpc": "2.0",
            "id": next(self._ids),
            "method": method,
            "params": params,
        }
        logger.debug(f"Posting {method} to {self.api_url}: {json.dumps(payload)}")
        response = await self.client.post(self.api_url, json=payload, headers=self._headers)
        response.raise_for_status()
        body = response.json()
        if not isinstance(body, dict):
            raise ProofRequestError(f"Unexpected {method} response: {body!r}")
        if error := body.get("error"):
            raise ProofRequestError(f"{method} failed: {error}")
        return body.get("result")

    async def request_proof(
        self,
        source_chain_id: int,
        destination_chain_id: int,
        block_number: int,
        position_in_block: int,
    ) -> ProofJob:
        """
        Ask the proof service to start computing a proof.

        Args:
            source_chain_id: Chain the event was emitted on
            destination_chain_id: Chain the proof will be submitted to
            block_number: Block containing the event
            position_in_block: Index of the emitting transaction in its block

        Returns:
            ProofJob in REQUESTED state

        Raises:
            ProofRequestError: If the service does not accept the request
        """
        params = [source_chain_id, destination_chain_id, block_number, position_in_block]
        logger.info(
            f"Requesting proof from Polymer API: src={source_chain_id} dst={destination_chain_id} "
            f"block={block_number} position={position_in_block}"
        )
        try:
            job_id = await self._rpc(self.REQUEST_METHOD, params)
        except ProofRequestError:
            raise
        except httpx.HTTPStatusError as e:
            raise ProofRequestError(
                f"Failed to request proof from Polymer API. Status code: {e.response.status_code}"
            ) from e
        except (httpx.HTTPError, ValueError) as e:
            raise ProofRequestError(f"Failed to request proof from Polymer API: {e}") from e

        if job_id is None:
            raise ProofRequestError("Polymer API accepted the request but returned no job ID")

        job = ProofJob(
            job_id=str(job_id),
            source_chain_id=source_chain_id,
            destination_chain_id=destination_chain_id,
            block_number=block_number,
            position_in_block=position_in_block,
        )
        logger.info(f"✓ Proof requested. Job ID: {job.job_id}")
        return job

    async def _query(self, job: ProofJob) -> tuple[str | None, str | None]:
        """Run one poll, returning (status, base64 proof). Failures count as not ready."""
        try:
            result = await self._rpc(self.QUERY_METHOD, [job.job_id])
        except (ProofRequestError, httpx.HTTPError, ValueError) as e:
            logger.warning(f"Proof poll {job.attempts + 1} for job {job.job_id} failed: {e}")
            return None, None

        if not isinstance(result, dict):
            return None, None
        return result.get("status"), result.get("proof")

    async def await_proof(self, job: ProofJob) -> bytes:
        """
        Poll until the proof is ready or the attempt ceiling is reached.

        The delay before each poll is recomputed from the attempt counter on
        every iteration: initial_delay before the first, poll_interval after.

        Args:
            job: Job returned by request_proof

        Returns:
            Decoded proof bytes

        Raises:
            ProofTimeoutError: After max_attempts polls without a proof
            ProofRequestError: If the ready proof is not valid base64
        """
        logger.info(f"Waiting for proof of job {job.job_id} to be generated...")

        while job.attempts < self.max_attempts:
            await self._sleep(poll_delay(job.attempts, self.initial_delay, self.poll_interval))
            status, encoded = await self._query(job)
            job.attempts += 1
            job.last_status = status

            logger.info(f"Proof status: {status} (poll {job.attempts}/{self.max_attempts})")
            if self.on_status:
                try:
                    self.on_status(job, status)
                except Exception as e:
                    logger.error(f"Proof status observer failed for job {job.job_id}: {e}", exc_info=True)

            if encoded:
                job.proof = decode_proof(encoded)
                job.status = ProofStatus.READY
                logger.info(f"✓ Proof received. Length: {len(job.proof)} bytes")
                return job.proof

            job.status = ProofStatus.PENDING

        job.status = ProofStatus.FAILED
        raise ProofTimeoutError(job.job_id, job.attempts)

    async def obtain_proof(
        self,
        source_chain_id: int,
        destination_chain_id: int,
        block_number: int,
        position_in_block: int,
    ) -> bytes:
        """Complete flow: request a proof and wait for it."""
        job = await self.request_proof(source_chain_id, destination_chain_id, block_number, position_in_block)
        return await self.await_proof(job)
