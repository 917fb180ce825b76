"""
Tests for plan limits and usage counters
"""
from datetime import datetime, timezone

import pytest

from optimizer.enums import CounterKind, JobType
from optimizer.services.plans import allows_job_type, get_plan
from optimizer.services.quota import QuotaGuard, QuotaStoreError, UsageStore, billing_period

from tests.conftest import TENANT_ID, configure_tenant

MARCH = datetime(2025, 3, 31, 23, 59, tzinfo=timezone.utc)
APRIL = datetime(2025, 4, 1, 0, 1, tzinfo=timezone.utc)


class BrokenStore(UsageStore):
    def __init__(self):
        super().__init__(session_factory=None)

    def plan_for(self, tenant_id):
        raise QuotaStoreError("database is locked")

    def increment(self, tenant_id, period, kind, delta):
        raise QuotaStoreError("database is locked")


@pytest.fixture
def session_factory(make_services):
    return make_services(plan="FREE").session_factory


def guard(session_factory, now=MARCH):
    return QuotaGuard(UsageStore(session_factory), clock=lambda: now)


def test_free_plan_allows_until_limit(session_factory):
    quota = guard(session_factory)
    quota.increment(TENANT_ID, CounterKind.PRODUCTS_OPTIMIZED, 24)
    assert quota.allow(TENANT_ID).allowed

    quota.increment(TENANT_ID, CounterKind.PRODUCTS_OPTIMIZED, 1)
    decision = quota.allow(TENANT_ID)
    assert not decision.allowed
    assert decision.current_usage == 25
    assert decision.limit == 25
    assert "25/25" in decision.reason


def test_enterprise_plan_is_unlimited(session_factory):
    configure_tenant(session_factory, plan="ENTERPRISE")
    quota = guard(session_factory)
    quota.increment(TENANT_ID, CounterKind.PRODUCTS_OPTIMIZED, 10_000)

    decision = quota.allow(TENANT_ID)
    assert decision.allowed
    assert decision.limit is None


def test_counters_reset_with_billing_period(session_factory):
    guard(session_factory, MARCH).increment(TENANT_ID, CounterKind.PRODUCTS_OPTIMIZED, 25)

    assert not guard(session_factory, MARCH).allow(TENANT_ID).allowed
    assert guard(session_factory, APRIL).allow(TENANT_ID).allowed


def test_usage_reports_every_counter(session_factory):
    quota = guard(session_factory)
    quota.increment(TENANT_ID, CounterKind.PRODUCTS_OPTIMIZED, 5)
    quota.increment(TENANT_ID, CounterKind.META_TITLES_GENERATED, 4)
    quota.increment(TENANT_ID, CounterKind.META_TITLES_GENERATED, 1)

    usage = quota.usage(TENANT_ID)
    assert usage["billing_period"] == "2025-03"
    assert usage["plan"] == "FREE"
    assert usage["limit"] == 25
    assert usage["percent_used"] == 20.0
    assert usage["counters"]["products_optimized"] == 5
    assert usage["counters"]["meta_titles_generated"] == 5
    assert usage["counters"]["alt_texts_generated"] == 0


def test_store_errors_fail_open_by_default():
    quota = QuotaGuard(BrokenStore())
    decision = quota.allow(TENANT_ID)
    assert decision.allowed
    assert decision.reason == "Quota store unavailable"


def test_store_errors_can_fail_closed():
    decision = QuotaGuard(BrokenStore(), fail_open=False).allow(TENANT_ID)
    assert not decision.allowed


def test_increment_swallows_store_errors():
    QuotaGuard(BrokenStore()).increment(TENANT_ID, CounterKind.PRODUCTS_OPTIMIZED, 1)


def test_billing_period_format():
    assert billing_period(MARCH) == "2025-03"
    assert billing_period(datetime(2025, 11, 2, tzinfo=timezone.utc)) == "2025-11"


def test_plan_features():
    free, pro = get_plan("FREE"), get_plan("pro")
    assert not allows_job_type(free, JobType.ALT_TEXT)
    assert not allows_job_type(free, JobType.SCHEMA)
    assert allows_job_type(free, JobType.TITLE_DESC)
    assert allows_job_type(pro, JobType.ALT_TEXT)
    assert get_plan("ENTERPRISE").custom_prompts
    assert get_plan("UNKNOWN").id == "FREE"
