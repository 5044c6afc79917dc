"""Pydantic schemas for API request/response validation"""

from datetime import date
from typing import Any, Dict, List, Optional

from pydantic import BaseModel, ConfigDict, Field
from pydantic.alias_generators import to_camel


class CamelModel(BaseModel):
    """Wire models use camelCase keys, matching the persisted snapshot shape"""

    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True, from_attributes=True)


class AppErrorSchema(CamelModel):
    kind: str
    message: str
    recoverable: bool = True
    details: Optional[Dict[str, Any]] = None


class RiskFindingSchema(CamelModel):
    id: str
    severity: str
    title: str
    detail: str
    metric_value: float


class RiskFindingsRequest(CamelModel):
    """Request body for POST /v1/risk-findings (worker inbound message)"""

    # Left untyped so a malformed snapshot is reported in the body, not as a 422
    current_collections_state: Any = None
    correlation_id: Optional[str] = Field(None, min_length=1, description="Echoed back in the reply")


class RiskFindingsResponse(CamelModel):
    """Response for POST /v1/risk-findings (worker outbound message)"""

    findings: List[RiskFindingSchema]
    error: Optional[AppErrorSchema] = None
    correlation_id: str


class HorizonSchema(CamelModel):
    id: str
    label: str
    months: int


class ProfileAssumptionsSchema(CamelModel):
    savings_pace_multiplier: float
    annual_asset_growth_percent: float
    debt_payment_extra_percent: float
    apr_stress_adjustment_percent: float


class ProjectionPointSchema(CamelModel):
    horizon_id: str
    months: int
    projected_assets: float
    projected_debt: float
    projected_net_worth: float


class ProjectionProfileSchema(CamelModel):
    id: str
    label: str
    assumptions: ProfileAssumptionsSchema
    points: List[ProjectionPointSchema]


class BaselineVariablesSchema(CamelModel):
    starting_asset_value: float
    starting_liability_balance: float
    total_monthly_income: float
    total_monthly_expenses: float
    monthly_savings_pace_baseline: float
    total_monthly_debt_payments: float
    weighted_apr_percent: float


class NetWorthProjectionSchema(CamelModel):
    horizons: List[HorizonSchema]
    baseline_variables: BaselineVariablesSchema
    profiles: List[ProjectionProfileSchema]


class ProjectionRequest(CamelModel):
    """Request body for POST /v1/net-worth-projection"""

    current_collections_state: Any = None
    reference_date: Optional[date] = Field(None, description="Month whose tracked savings set the savings pace")


class ProjectionResponse(CamelModel):
    """Response for POST /v1/net-worth-projection"""

    projection: Optional[NetWorthProjectionSchema] = None
    error: Optional[AppErrorSchema] = None
