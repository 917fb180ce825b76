"""
Billing plans and the features each one unlocks
"""
from dataclasses import dataclass
from typing import Optional

from ..config import DEFAULT_PLAN
from ..enums import JobType


@dataclass(frozen=True)
class Plan:
    id: str
    name: str
    products_per_month: Optional[int]  # None = unlimited
    alt_text_generation: bool = False
    schema_markup: bool = False
    custom_prompts: bool = False


PLANS = {
    "FREE": Plan(id="FREE", name="Free", products_per_month=25),
    "PRO": Plan(
        id="PRO", name="Pro", products_per_month=500,
        alt_text_generation=True, schema_markup=True,
    ),
    "ENTERPRISE": Plan(
        id="ENTERPRISE", name="Enterprise", products_per_month=None,
        alt_text_generation=True, schema_markup=True, custom_prompts=True,
    ),
}


def get_plan(plan_id: Optional[str]) -> Plan:
    return PLANS.get((plan_id or "").upper()) or PLANS[DEFAULT_PLAN]


def allows_job_type(plan: Plan, job_type: JobType) -> bool:
    if job_type == JobType.ALT_TEXT:
        return plan.alt_text_generation
    if job_type == JobType.SCHEMA:
        return plan.schema_markup
    return True
