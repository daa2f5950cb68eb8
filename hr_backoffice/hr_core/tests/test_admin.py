import pytest
from django.contrib import admin
from django.contrib.messages.storage.fallback import FallbackStorage
from django.core.exceptions import PermissionDenied
from django.test import RequestFactory

from hr_core.admin.actions import deactivate_exchange_rates
from hr_core.models import (Branch, Company, Currency, ExchangeRate,
                            ExchangeRateHistory, ExpenseCategory, Region)
from hr_core.services.currency import create_currency
from hr_core.services.exchange_rate import upsert_exchange_rate


def _admin_request(user):
    request = RequestFactory().post("/admin/")
    request.user = user
    request.company_id = None
    request.session = {}
    request._messages = FallbackStorage(request)
    return request


@pytest.mark.django_db
def test_models_are_registered():
    for model in (Company, Currency, ExchangeRate, ExchangeRateHistory, ExpenseCategory, Region, Branch):
        assert admin.site.is_registered(model), model


@pytest.mark.django_db
def test_deactivate_action_writes_history(django_user_model):
    company = Company.objects.create(name="Acme", code="ACME")
    usd = create_currency({"code": "USD", "name": "US Dollar", "symbol": "$"}, company.pk)
    inr = create_currency({"code": "INR", "name": "Indian Rupee", "symbol": "₹"}, company.pk)
    rate = upsert_exchange_rate(
        {"from_currency_id": inr["id"], "to_currency_id": usd["id"],
         "exchange_rate": "0.012", "effective_from": "2024-01-01"},
        company.pk,
    )["exchange_rate"]
    boss = django_user_model.objects.create_superuser(username="boss", password="pw")

    model_admin = admin.site._registry[ExchangeRate]
    deactivate_exchange_rates(model_admin, _admin_request(boss), ExchangeRate.objects.all())

    assert ExchangeRate.objects.get(pk=rate["id"]).is_active is False
    entry = ExchangeRateHistory.objects.get(exchange_rate_id=rate["id"], action="Deactivate")
    assert entry.change_reason == "Deactivated from admin"
    assert entry.changed_by == boss.pk


@pytest.mark.django_db
def test_history_admin_is_read_only(django_user_model):
    boss = django_user_model.objects.create_superuser(username="boss", password="pw")
    request = _admin_request(boss)
    model_admin = admin.site._registry[ExchangeRateHistory]

    assert model_admin.has_add_permission(request) is False
    assert model_admin.has_delete_permission(request) is False
    assert "change_reason" in model_admin.get_readonly_fields(request)
    with pytest.raises(PermissionDenied):
        model_admin.save_model(request, ExchangeRateHistory(), form=None, change=True)
