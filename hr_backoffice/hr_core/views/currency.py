from ..services import conversion
from ..services import currency as currency_service
from ..services import currency_policy, exchange_rate
from .base import api_view


# ---------- Currencies ----------
@api_view("Currency created successfully", status=201)
def currency_create_view(body, company_id, user_id):
    return currency_service.create_currency(body, company_id, user_id)


@api_view()
def currency_list_view(body, company_id, user_id):
    return currency_service.list_currencies(body, company_id)


@api_view()
def currency_details_view(body, company_id, user_id):
    return currency_service.get_currency_details(body.get("currency_id"), company_id)


@api_view("Currency updated successfully")
def currency_update_view(body, company_id, user_id):
    return currency_service.update_currency(body, company_id, user_id)


@api_view("Currency deleted successfully")
def currency_delete_view(body, company_id, user_id):
    return currency_service.delete_currency(body.get("currency_id"), company_id, user_id)


@api_view("Base currency updated successfully")
def currency_set_base_view(body, company_id, user_id):
    return currency_service.set_base_currency(body.get("currency_id"), company_id, user_id)


@api_view("Default expense currency updated successfully")
def currency_set_default_view(body, company_id, user_id):
    return currency_service.set_default_expense_currency(body.get("currency_id"), company_id, user_id)


@api_view()
def currency_dropdown_view(body, company_id, user_id):
    return currency_service.get_dropdown_data(body, company_id)


@api_view()
def currency_check_usage_view(body, company_id, user_id):
    return currency_service.check_usage(body.get("currency_id"), company_id)


# ---------- Exchange rates ----------
@api_view("Exchange rate saved successfully")
def exchange_rate_upsert_view(body, company_id, user_id):
    return exchange_rate.upsert_exchange_rate(body, company_id, user_id)


@api_view()
def exchange_rate_list_view(body, company_id, user_id):
    return exchange_rate.get_exchange_rates(body, company_id)


@api_view("Exchange rate deleted successfully")
def exchange_rate_delete_view(body, company_id, user_id):
    return exchange_rate.delete_exchange_rate(
        body.get("exchange_rate_id"), company_id, user_id, reason=body.get("reason")
    )


@api_view("Exchange rates updated")
def exchange_rate_bulk_update_view(body, company_id, user_id):
    return exchange_rate.bulk_update_rates(body, company_id, user_id)


@api_view()
def exchange_rate_history_view(body, company_id, user_id):
    return exchange_rate.get_exchange_rate_history(body, company_id)


# ---------- Policy / conversion ----------
@api_view()
def currency_policy_view(body, company_id, user_id):
    return currency_policy.get_currency_policy(company_id)


@api_view("Currency policy updated successfully")
def currency_policy_update_view(body, company_id, user_id):
    return currency_policy.update_currency_policy(body, company_id, user_id)


@api_view()
def convert_amount_view(body, company_id, user_id):
    return conversion.convert_amount(body, company_id)
