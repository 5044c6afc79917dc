"""POST /v1/net-worth-projection - three-profile net worth projection"""

import logging
import time

from fastapi import APIRouter, HTTPException, Request

from budget_cockpit.api.dependencies import get_request_id
from budget_cockpit.api.v1.schemas import NetWorthProjectionSchema, ProjectionRequest, ProjectionResponse
from budget_cockpit.domain.projection import calculate_net_worth_projection
from budget_cockpit.infrastructure.observability.logging import log_projection
from budget_cockpit.infrastructure.observability.metrics import projection_counter

router = APIRouter()


@router.post("/net-worth-projection", response_model=ProjectionResponse)
def project_net_worth(request_body: ProjectionRequest, request: Request):
    """Project assets, debt and net worth at fixed horizons for each profile"""
    start_time = time.time()
    request_id = get_request_id(request)

    try:
        projection, error = calculate_net_worth_projection(
            request_body.current_collections_state,
            request_body.reference_date,
        )

        duration_ms = (time.time() - start_time) * 1000
        projection_counter.labels(outcome="error" if error else "ok").inc()
        log_projection(request_id, error.kind.value if error else None, duration_ms)

        if error is not None:
            return ProjectionResponse(error=error.to_dict())
        return ProjectionResponse(projection=NetWorthProjectionSchema.model_validate(projection))

    except Exception as e:
        logging.error(f"Unexpected error: {e}", extra={"request_id": request_id})
        raise HTTPException(status_code=500, detail="Internal server error")
