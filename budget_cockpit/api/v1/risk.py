"""POST /v1/risk-findings - risk findings over a budget snapshot"""

import logging
import time

from fastapi import APIRouter, Depends, HTTPException, Request

from budget_cockpit.api.dependencies import get_request_id, get_risk_worker
from budget_cockpit.api.v1.schemas import RiskFindingsRequest, RiskFindingsResponse
from budget_cockpit.infrastructure.observability.logging import log_risk_evaluation
from budget_cockpit.infrastructure.observability.metrics import record_risk_evaluation
from budget_cockpit.worker import RiskFindingsWorker

router = APIRouter()


@router.post("/risk-findings", response_model=RiskFindingsResponse)
async def evaluate_risk_findings(
    request_body: RiskFindingsRequest,
    request: Request,
    worker: RiskFindingsWorker = Depends(get_risk_worker),
):
    """
    Run the risk engine on the worker pool.

    Engine validation errors come back in the body with status 200 and an
    empty findings list; only unexpected failures map to 500.
    """
    start_time = time.time()
    request_id = get_request_id(request)

    try:
        reply = await worker.evaluate(
            request_body.current_collections_state,
            correlation_id=request_body.correlation_id,
        )

        duration_ms = (time.time() - start_time) * 1000
        record_risk_evaluation(reply.findings, reply.error)
        log_risk_evaluation(
            request_id,
            reply.correlation_id,
            len(reply.findings),
            reply.error["kind"] if reply.error else None,
            duration_ms,
        )

        return RiskFindingsResponse(
            findings=reply.findings,
            error=reply.error,
            correlation_id=reply.correlation_id,
        )

    except Exception as e:
        logging.error(f"Unexpected error: {e}", extra={"request_id": request_id})
        raise HTTPException(status_code=500, detail="Internal server error")
