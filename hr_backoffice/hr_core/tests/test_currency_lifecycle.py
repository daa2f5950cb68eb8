from decimal import Decimal

from django.test import TestCase

from hr_core.exceptions import ConflictError, InvalidInput, RecordNotFound
from hr_core.models import AuditLog, Company, Currency, ExchangeRate, ExchangeRateHistory
from hr_core.services.currency import (check_usage, create_currency,
                                       delete_currency, get_currency_details,
                                       get_dropdown_data, list_currencies,
                                       set_base_currency,
                                       set_default_expense_currency,
                                       update_currency)
from hr_core.services.exchange_rate import upsert_exchange_rate


class CurrencyLifecycleTests(TestCase):
    def setUp(self):
        self.company = Company.objects.create(name="Acme", code="ACME")
        self.usd = create_currency(
            {"code": " usd ", "name": "US Dollar", "symbol": "$", "is_base_currency": True},
            self.company.pk,
            user_id=1,
        )

    def _create(self, code, name, **extra):
        payload = {"code": code, "name": name, "symbol": code[0], **extra}
        return create_currency(payload, self.company.pk, user_id=1)

    def _rate(self, from_id, to_id, rate, effective_from="2020-01-01"):
        return upsert_exchange_rate(
            {
                "from_currency_id": from_id,
                "to_currency_id": to_id,
                "exchange_rate": rate,
                "effective_from": effective_from,
            },
            self.company.pk,
            user_id=1,
        )["exchange_rate"]

    # ---------- create ----------
    def test_create_normalizes_code_and_applies_defaults(self):
        self.assertEqual(self.usd["code"], "USD")
        self.assertEqual(self.usd["decimal_places"], 2)
        self.assertEqual(self.usd["symbol_position"], "Before")
        self.assertEqual(self.usd["decimal_separator"], ".")
        self.assertEqual(self.usd["thousands_separator"], ",")
        self.assertTrue(self.usd["is_base_currency"])
        self.assertEqual(self.usd["created_by"], 1)

    def test_create_rejects_bad_input(self):
        for payload in (
            {"code": "US", "name": "x", "symbol": "x"},
            {"code": "U1D", "name": "x", "symbol": "x"},
            {"code": "", "name": "x", "symbol": "x"},
            {"code": "EUR", "name": "", "symbol": "€"},
            {"code": "EUR", "name": "Euro", "symbol": ""},
            {"code": "EUR", "name": "Euro", "symbol": "€", "decimal_places": 5},
            {"code": "EUR", "name": "Euro", "symbol": "€", "symbol_position": "Middle"},
        ):
            with self.assertRaises(InvalidInput):
                create_currency(payload, self.company.pk)

    def test_zero_decimal_places_is_kept(self):
        jpy = self._create("JPY", "Yen", decimal_places=0)
        self.assertEqual(jpy["decimal_places"], 0)

    def test_duplicate_code_conflicts(self):
        with self.assertRaises(ConflictError) as ctx:
            self._create("usd", "Another Dollar")
        self.assertEqual(str(ctx.exception), "A currency with this code already exists")

    def test_same_code_allowed_in_other_company(self):
        other = Company.objects.create(name="Other", code="OTHER")
        created = create_currency({"code": "USD", "name": "US Dollar", "symbol": "$"}, other.pk)
        self.assertNotEqual(created["id"], self.usd["id"])

    def test_deleted_code_is_restored_not_duplicated(self):
        inr = self._create("INR", "Indian Rupee", decimal_places=3)
        delete_currency(inr["id"], self.company.pk, user_id=1)

        restored = self._create("INR", "Indian Rupee (restored)")
        self.assertEqual(restored["id"], inr["id"])
        self.assertEqual(restored["name"], "Indian Rupee (restored)")
        # fields not sent fall back to defaults
        self.assertEqual(restored["decimal_places"], 2)
        self.assertTrue(restored["is_active"])
        stored = Currency.objects.get(pk=inr["id"])
        self.assertIsNone(stored.deleted_at)
        self.assertEqual(
            list(AuditLog.objects.for_object(stored).values_list("action", flat=True)),
            ["restore", "delete", "create"],
        )

    # ---------- base / default flags ----------
    def test_only_one_base_currency(self):
        inr = self._create("INR", "Indian Rupee", is_base_currency=True)

        self.assertEqual(
            list(Currency.objects.for_company(self.company).alive().filter(is_base_currency=True)
                 .values_list("pk", flat=True)),
            [inr["id"]],
        )

    def test_set_base_moves_flag(self):
        eur = self._create("EUR", "Euro")
        set_base_currency(eur["id"], self.company.pk, user_id=2)

        self.assertFalse(Currency.objects.get(pk=self.usd["id"]).is_base_currency)
        self.assertTrue(Currency.objects.get(pk=eur["id"]).is_base_currency)

    def test_set_base_rejects_inactive_currency(self):
        eur = self._create("EUR", "Euro", is_active=False)
        with self.assertRaises(InvalidInput):
            set_base_currency(eur["id"], self.company.pk)

    def test_default_expense_currency_is_single(self):
        eur = self._create("EUR", "Euro", is_default_expense_currency=True)
        inr = self._create("INR", "Indian Rupee")
        set_default_expense_currency(inr["id"], self.company.pk)

        self.assertFalse(Currency.objects.get(pk=eur["id"]).is_default_expense_currency)
        self.assertTrue(Currency.objects.get(pk=inr["id"]).is_default_expense_currency)

    # ---------- update ----------
    def test_update_is_partial(self):
        updated = update_currency(
            {"currency_id": self.usd["id"], "symbol": "US$"}, self.company.pk, user_id=3
        )
        self.assertEqual(updated["symbol"], "US$")
        self.assertEqual(updated["name"], "US Dollar")
        self.assertEqual(updated["updated_by"], 3)

    def test_update_can_clear_base_flag(self):
        updated = update_currency({"currency_id": self.usd["id"], "is_base_currency": False}, self.company.pk)
        self.assertFalse(updated["is_base_currency"])
        self.assertFalse(Currency.objects.for_company(self.company).filter(is_base_currency=True).exists())
        usage = check_usage(self.usd["id"], self.company.pk)
        self.assertEqual(usage["total_usage_count"], 0)
        self.assertTrue(usage["can_delete"])

    def test_update_can_deactivate_base_currency(self):
        updated = update_currency({"currency_id": self.usd["id"], "is_active": False}, self.company.pk)
        self.assertFalse(updated["is_active"])
        self.assertTrue(updated["is_base_currency"])

    def test_update_base_flag_moves_it(self):
        eur = self._create("EUR", "Euro")
        update_currency({"currency_id": eur["id"], "is_base_currency": True}, self.company.pk)
        self.assertFalse(Currency.objects.get(pk=self.usd["id"]).is_base_currency)

    def test_update_code_conflict(self):
        eur = self._create("EUR", "Euro")
        with self.assertRaises(ConflictError):
            update_currency({"currency_id": eur["id"], "code": "USD"}, self.company.pk)

    def test_update_unknown_currency(self):
        with self.assertRaises(RecordNotFound):
            update_currency({"currency_id": 999999, "name": "x"}, self.company.pk)

    # ---------- delete ----------
    def test_delete_base_currency_fails(self):
        with self.assertRaises(ConflictError) as ctx:
            delete_currency(self.usd["id"], self.company.pk)
        self.assertIn("Cannot delete base currency", str(ctx.exception))
        self.assertIsNone(Currency.objects.get(pk=self.usd["id"]).deleted_at)

    def test_delete_deactivates_rates_on_both_sides(self):
        inr = self._create("INR", "Indian Rupee")
        to_usd = self._rate(inr["id"], self.usd["id"], "0.012")
        from_usd = self._rate(self.usd["id"], inr["id"], "83.25")

        result = delete_currency(inr["id"], self.company.pk, user_id=5)

        self.assertEqual(result["deactivated_rates"], 2)
        self.assertIsNotNone(Currency.objects.get(pk=inr["id"]).deleted_at)
        for rate_id in (to_usd["id"], from_usd["id"]):
            self.assertFalse(ExchangeRate.objects.get(pk=rate_id).is_active)
            entry = ExchangeRateHistory.objects.filter(exchange_rate_id=rate_id, action="Deactivate").get()
            self.assertEqual(entry.change_reason, "Currency deleted")
            self.assertEqual(entry.changed_by, 5)

    def test_deleted_currency_disappears_from_reads(self):
        eur = self._create("EUR", "Euro")
        delete_currency(eur["id"], self.company.pk)

        with self.assertRaises(RecordNotFound):
            get_currency_details(eur["id"], self.company.pk)
        rows, pagination = list_currencies({}, self.company.pk)
        self.assertEqual([r["code"] for r in rows], ["USD"])
        self.assertEqual(pagination["total"], 1)

    # ---------- usage ----------
    def test_check_usage_on_base_currency_with_three_rates(self):
        inr = self._create("INR", "Indian Rupee")
        eur = self._create("EUR", "Euro")
        gbp = self._create("GBP", "Pound")
        self._rate(inr["id"], self.usd["id"], "0.012")
        self._rate(eur["id"], self.usd["id"], "1.09")
        self._rate(self.usd["id"], gbp["id"], "0.79")

        usage = check_usage(self.usd["id"], self.company.pk)

        self.assertEqual(usage["total_usage_count"], 4)
        self.assertTrue(usage["is_in_use"])
        self.assertFalse(usage["can_delete"])
        self.assertEqual(
            {u["type"]: u["count"] for u in usage["usages"]},
            {"base_currency": 1, "exchange_rates_to": 2, "exchange_rates_from": 1},
        )

    def test_check_usage_on_unused_currency(self):
        eur = self._create("EUR", "Euro")
        usage = check_usage(eur["id"], self.company.pk)
        self.assertEqual(usage["total_usage_count"], 0)
        self.assertTrue(usage["can_delete"])
        self.assertEqual(usage["usages"], [])

    # ---------- reads ----------
    def test_list_search_sort_and_rate_count(self):
        inr = self._create("INR", "Indian Rupee")
        self._create("EUR", "Euro", is_active=False)
        self._rate(inr["id"], self.usd["id"], "0.012")

        rows, _ = list_currencies({"sort_by": "code", "sort_order": "desc"}, self.company.pk)
        self.assertEqual([r["code"] for r in rows], ["USD", "INR", "EUR"])

        rows, _ = list_currencies({"search": "rupee"}, self.company.pk)
        self.assertEqual(len(rows), 1)
        self.assertEqual(rows[0]["exchange_rates_count"], 1)
        self.assertEqual(rows[0]["latest_rate_to_base"], Decimal("0.012"))

        rows, _ = list_currencies({"is_active": "false"}, self.company.pk)
        self.assertEqual([r["code"] for r in rows], ["EUR"])

    def test_list_pagination(self):
        for code in ("AAA", "BBB", "CCC"):
            self._create(code, code)
        rows, pagination = list_currencies({"limit": 2, "offset": 2}, self.company.pk)
        self.assertEqual(len(rows), 2)
        self.assertEqual(pagination, {"total": 4, "limit": 2, "offset": 2, "total_pages": 2, "current_page": 2})

    def test_pagination_rejects_fractional_numbers(self):
        with self.assertRaises(InvalidInput) as ctx:
            list_currencies({"limit": 1.7}, self.company.pk)
        self.assertEqual(str(ctx.exception), "limit must be an integer")
        _, pagination = list_currencies({"limit": 2.0}, self.company.pk)
        self.assertEqual(pagination["limit"], 2)

    def test_details_include_current_rate_to_base(self):
        inr = self._create("INR", "Indian Rupee")
        self._rate(inr["id"], self.usd["id"], "0.012")

        details = get_currency_details(inr["id"], self.company.pk)
        self.assertEqual(details["base_currency"]["code"], "USD")
        self.assertEqual(details["current_rate_to_base"]["exchange_rate"], Decimal("0.012"))
        self.assertEqual(len(details["recent_exchange_rates"]), 1)

    def test_dropdown_lists_currencies_and_enums(self):
        self._create("EUR", "Euro", is_active=False)
        data = get_dropdown_data({}, self.company.pk)
        self.assertEqual([c["code"] for c in data["currencies"]], ["USD"])
        self.assertIn({"value": "Truncate", "label": "Truncate"}, data["rounding_methods"])
        self.assertEqual([s["value"] for s in data["rate_sources"]], ["Manual", "API", "Bank"])

        data = get_dropdown_data({"include_inactive": True}, self.company.pk)
        self.assertEqual(len(data["currencies"]), 2)
