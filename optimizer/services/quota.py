"""
Per-tenant monthly quota.

The guard is consulted once before a job touches any item. Counters only ever
grow within a billing period; reverting a change does not refund usage.
"""

import logging
from dataclasses import dataclass
from datetime import datetime, timezone
from typing import Callable, Dict, Optional

from sqlalchemy.exc import IntegrityError, SQLAlchemyError
from sqlalchemy.orm import sessionmaker

from ..config import QUOTA_FAIL_OPEN
from ..db import session_scope
from ..enums import CounterKind
from ..models.tenant import Tenant
from ..models.usage import UsageCounter
from .plans import Plan, get_plan

logger = logging.getLogger(__name__)


class QuotaStoreError(Exception):
    """The counter store could not be read or written."""


class QuotaExceededError(Exception):
    pass


@dataclass(frozen=True)
class QuotaDecision:
    allowed: bool
    current_usage: int
    limit: Optional[int]
    reason: Optional[str] = None


def billing_period(now: Optional[datetime] = None) -> str:
    now = now or datetime.now(timezone.utc)
    return f"{now.year:04d}-{now.month:02d}"


class UsageStore:
    """SQL-backed counters, one row per tenant, period and counter kind."""

    def __init__(self, session_factory: sessionmaker):
        self.session_factory = session_factory

    def plan_for(self, tenant_id: str) -> Plan:
        try:
            with self.session_factory() as db:
                tenant = db.get(Tenant, tenant_id)
        except SQLAlchemyError as e:
            raise QuotaStoreError(str(e)) from e
        return get_plan(tenant.plan if tenant else None)

    def counters(self, tenant_id: str, period: str) -> Dict[CounterKind, int]:
        try:
            with self.session_factory() as db:
                rows = db.query(UsageCounter).filter(
                    UsageCounter.tenant_id == tenant_id,
                    UsageCounter.billing_period == period,
                ).all()
        except SQLAlchemyError as e:
            raise QuotaStoreError(str(e)) from e
        values = {kind: 0 for kind in CounterKind}
        for row in rows:
            try:
                values[CounterKind(row.counter)] = row.value
            except ValueError:
                logger.warning("Unknown usage counter %r", row.counter, extra={"component": "quota"})
        return values

    def increment(self, tenant_id: str, period: str, kind: CounterKind, delta: int) -> None:
        try:
            self._increment(tenant_id, period, kind, delta)
        except IntegrityError:
            # a concurrent first insert won; the row exists now
            try:
                self._increment(tenant_id, period, kind, delta)
            except SQLAlchemyError as e:
                raise QuotaStoreError(str(e)) from e
        except SQLAlchemyError as e:
            raise QuotaStoreError(str(e)) from e

    def _increment(self, tenant_id: str, period: str, kind: CounterKind, delta: int) -> None:
        with session_scope(self.session_factory) as db:
            row = db.get(UsageCounter, (tenant_id, period, kind.value))
            if row is None:
                db.add(UsageCounter(tenant_id=tenant_id, billing_period=period, counter=kind.value, value=delta))
            else:
                row.value = UsageCounter.value + delta


class QuotaGuard:
    def __init__(self, store: UsageStore, fail_open: bool = QUOTA_FAIL_OPEN,
                 clock: Callable[[], datetime] = lambda: datetime.now(timezone.utc)):
        self.store = store
        self.fail_open = fail_open
        self._clock = clock

    def allow(self, tenant_id: str) -> QuotaDecision:
        try:
            plan = self.store.plan_for(tenant_id)
            if plan.products_per_month is None:
                return QuotaDecision(allowed=True, current_usage=0, limit=None)
            usage = self.store.counters(tenant_id, billing_period(self._clock()))[CounterKind.PRODUCTS_OPTIMIZED]
        except QuotaStoreError as e:
            return self._store_unavailable(tenant_id, e)

        limit = plan.products_per_month
        if usage >= limit:
            return QuotaDecision(
                allowed=False,
                current_usage=usage,
                limit=limit,
                reason=f"Monthly quota exceeded: {usage}/{limit} products optimized on the {plan.name} plan",
            )
        return QuotaDecision(allowed=True, current_usage=usage, limit=limit)

    def _store_unavailable(self, tenant_id: str, error: Exception) -> QuotaDecision:
        logger.warning("Quota store unavailable, %s: %s", "allowing" if self.fail_open else "denying", error,
                       extra={"component": "quota", "tenant_id": tenant_id})
        reason = "Quota store unavailable"
        return QuotaDecision(allowed=self.fail_open, current_usage=0, limit=None, reason=reason)

    def increment(self, tenant_id: str, kind: CounterKind, delta: int = 1) -> None:
        """Best effort; usage tracking never blocks a job."""
        if delta <= 0:
            return
        try:
            self.store.increment(tenant_id, billing_period(self._clock()), CounterKind(kind), delta)
        except QuotaStoreError as e:
            logger.warning("Usage increment lost for %s: %s", kind, e,
                           extra={"component": "quota", "tenant_id": tenant_id})

    def usage(self, tenant_id: str) -> Dict[str, object]:
        period = billing_period(self._clock())
        plan = self.store.plan_for(tenant_id)
        counters = self.store.counters(tenant_id, period)
        used = counters[CounterKind.PRODUCTS_OPTIMIZED]
        limit = plan.products_per_month
        return {
            "billing_period": period,
            "plan": plan.id,
            "limit": limit,
            "counters": {kind.value: value for kind, value in counters.items()},
            "percent_used": round(used * 100.0 / limit, 1) if limit else 0.0,
        }
