"""Off-thread risk findings channel with correlation ids"""

import asyncio
import time
import uuid
from collections.abc import Mapping
from concurrent.futures import ThreadPoolExecutor
from dataclasses import dataclass
from typing import Any, Dict, List

from budget_cockpit.config import settings
from budget_cockpit.domain.results import AppError, ErrorKind
from budget_cockpit.domain.risk import extract_risk_findings
from budget_cockpit.infrastructure.observability.metrics import (
    risk_worker_latency_histogram,
    risk_worker_stale_counter,
)


def handle_risk_message(message: Any) -> Dict[str, Any]:
    """
    Worker protocol handler.

    Takes {currentCollectionsState[, correlationId]} and replies with
    {findings, error[, correlationId]}. A malformed message or snapshot yields
    an empty findings list and a VALIDATION error; nothing is raised.
    """
    if not isinstance(message, Mapping):
        error = AppError(ErrorKind.VALIDATION, "worker message must be an object", True, None)
        return {"findings": [], "error": error.to_dict()}

    findings, error = extract_risk_findings(message.get("currentCollectionsState"))
    reply: Dict[str, Any] = {
        "findings": [finding.to_dict() for finding in findings] if error is None else [],
        "error": error.to_dict() if error is not None else None,
    }
    if "correlationId" in message:
        reply["correlationId"] = message["correlationId"]
    return reply


@dataclass(frozen=True)
class WorkerReply:
    correlation_id: str
    findings: List[Dict[str, Any]]
    error: Dict[str, Any] | None
    # A newer request was submitted on the same channel before this reply arrived
    stale: bool = False


class RiskFindingsWorker:
    """
    Async request/response wrapper running the risk engine on a thread pool.

    Every request gets a correlation id. When a channel name is given, the
    worker remembers the latest id per channel until that reply arrives
    and marks older replies as stale so the caller can drop them. In-flight
    requests are never cancelled.
    """

    def __init__(self, max_workers: int | None = None):
        self.max_workers = max_workers or settings.worker_max_workers
        self._executor = ThreadPoolExecutor(max_workers=self.max_workers, thread_name_prefix="risk-worker")
        self._latest_by_channel: Dict[str, str] = {}

    async def evaluate(
        self,
        current_collections_state: Any,
        channel: str | None = None,
        correlation_id: str | None = None,
    ) -> WorkerReply:
        """
        Evaluate risk findings off the event loop.

        Args:
            current_collections_state: Snapshot or persisted snapshot mapping
            channel: Caller-chosen stream for stale-reply detection (None: untracked)
            correlation_id: Caller-supplied id (default: fresh uuid4)

        Returns:
            WorkerReply carrying the handler reply and the stale flag
        """
        correlation_id = correlation_id or str(uuid.uuid4())
        if channel is not None:
            self._latest_by_channel[channel] = correlation_id

        message = {"currentCollectionsState": current_collections_state, "correlationId": correlation_id}
        loop = asyncio.get_running_loop()
        start_time = time.time()
        reply = await loop.run_in_executor(self._executor, handle_risk_message, message)
        risk_worker_latency_histogram.observe(time.time() - start_time)

        stale = channel is not None and self._latest_by_channel.get(channel) != correlation_id
        if stale:
            risk_worker_stale_counter.inc()
        elif channel is not None:
            # newest reply is back; nothing left to supersede on this channel
            self._latest_by_channel.pop(channel, None)

        return WorkerReply(
            correlation_id=correlation_id,
            findings=reply["findings"],
            error=reply["error"],
            stale=stale,
        )

    def close(self) -> None:
        """Wait for in-flight evaluations and release the thread pool"""
        self._executor.shutdown(wait=True)
