import datetime

import pytest
from django.utils import timezone

from hr_core.models import Company, ExchangeRate
from hr_core.services.currency import create_currency
from hr_core.services.currency_policy import update_currency_policy
from hr_core.services.exchange_rate import upsert_exchange_rate
from hr_core.tasks import apply_bulk_rate_update, report_stale_rates


@pytest.fixture
def company(db):
    return Company.objects.create(name="Acme", code="ACME")


@pytest.fixture
def currencies(company):
    usd = create_currency({"code": "USD", "name": "US Dollar", "symbol": "$", "is_base_currency": True}, company.pk)
    inr = create_currency({"code": "INR", "name": "Indian Rupee", "symbol": "₹"}, company.pk)
    eur = create_currency({"code": "EUR", "name": "Euro", "symbol": "€"}, company.pk)
    return {"USD": usd["id"], "INR": inr["id"], "EUR": eur["id"]}


def test_apply_bulk_rate_update_runs_eagerly(company, currencies):
    payload = {
        "effective_from": "2024-06-01",
        "rate_source": "API",
        "source_reference": "feed-2024-06-01",
        "rates": [
            {"from_currency_id": currencies["INR"], "to_currency_id": currencies["USD"], "exchange_rate": "0.0125"},
            {"from_currency_id": currencies["EUR"], "to_currency_id": currencies["EUR"], "exchange_rate": "1"},
        ],
    }

    result = apply_bulk_rate_update.apply(args=[company.pk, payload], kwargs={"user_id": 11}).get()

    assert result["updated_count"] == 1
    assert result["skipped_count"] == 1
    rate = ExchangeRate.objects.get(company=company)
    assert rate.rate_source == "API"
    assert rate.source_reference == "feed-2024-06-01"
    assert rate.created_by == 11


def test_report_stale_rates_uses_policy_age(company, currencies):
    today = timezone.localdate()
    old = upsert_exchange_rate(
        {"from_currency_id": currencies["INR"], "to_currency_id": currencies["USD"],
         "exchange_rate": "0.012", "effective_from": (today - datetime.timedelta(days=30)).isoformat()},
        company.pk,
    )["exchange_rate"]
    upsert_exchange_rate(
        {"from_currency_id": currencies["EUR"], "to_currency_id": currencies["USD"],
         "exchange_rate": "1.09", "effective_from": today.isoformat()},
        company.pk,
    )

    assert report_stale_rates(company.pk) == [old["id"]]

    update_currency_policy({"max_rate_age_days": 60}, company.pk)
    assert report_stale_rates(company.pk) == []
