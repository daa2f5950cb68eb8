from decimal import Decimal

import pytest
from django.test import TestCase

from hr_core.exceptions import InvalidInput, RecordNotFound
from hr_core.models import Company, CurrencyPolicy
from hr_core.services.currency import create_currency
from hr_core.services.currency_policy import (get_currency_policy,
                                              get_policy_values,
                                              update_currency_policy)


class CurrencyPolicyTests(TestCase):
    def setUp(self):
        self.company = Company.objects.create(name="Acme", code="ACME")
        create_currency(
            {"code": "USD", "name": "US Dollar", "symbol": "$",
             "is_base_currency": True, "is_default_expense_currency": True},
            self.company.pk,
        )

    def test_defaults_without_stored_row(self):
        policy = get_currency_policy(self.company.pk)

        self.assertTrue(policy["is_default"])
        self.assertIsNone(policy["id"])
        self.assertEqual(policy["rounding_method"], "Round")
        self.assertEqual(policy["rounding_precision"], 2)
        self.assertEqual(policy["conversion_timing"], "Submission")
        self.assertEqual(policy["rate_tolerance_percentage"], Decimal("5.00"))
        self.assertEqual(policy["max_rate_age_days"], 7)
        self.assertTrue(policy["allow_multi_currency_expenses"])
        self.assertFalse(policy["allow_manual_rate_override"])
        self.assertEqual(policy["base_currency"]["code"], "USD")
        self.assertEqual(policy["default_expense_currency"]["code"], "USD")
        # reading never creates the row
        self.assertFalse(CurrencyPolicy.objects.exists())

    def test_first_update_creates_row_and_later_updates_merge(self):
        policy = update_currency_policy({"rounding_method": "Floor"}, self.company.pk, user_id=3)
        self.assertFalse(policy["is_default"])
        self.assertEqual(policy["rounding_method"], "Floor")
        self.assertEqual(policy["rounding_precision"], 2)

        policy = update_currency_policy(
            {"rounding_precision": 3, "allow_manual_rate_override": "true"}, self.company.pk, user_id=3
        )
        self.assertEqual(policy["rounding_method"], "Floor")
        self.assertEqual(policy["rounding_precision"], 3)
        self.assertTrue(policy["allow_manual_rate_override"])
        self.assertEqual(CurrencyPolicy.objects.filter(company=self.company).count(), 1)

    def test_precision_zero_is_stored(self):
        update_currency_policy({"rounding_precision": 0}, self.company.pk)
        self.assertEqual(get_policy_values(self.company.pk)["rounding_precision"], 0)

    def test_invalid_values_rejected(self):
        for payload in (
            {"rounding_method": "Bankers"},
            {"rounding_precision": 9},
            {"rounding_precision": -1},
            {"conversion_timing": "Later"},
            {"rate_tolerance_percentage": "101"},
            {"max_rate_age_days": -2},
            {"show_original_amount": "maybe"},
        ):
            with self.assertRaises(InvalidInput, msg=str(payload)):
                update_currency_policy(payload, self.company.pk)
        self.assertFalse(CurrencyPolicy.objects.exists())


@pytest.mark.django_db
def test_policy_for_unknown_company():
    with pytest.raises(RecordNotFound):
        get_currency_policy(999999)


@pytest.mark.django_db
def test_policy_values_fall_back_to_defaults():
    company = Company.objects.create(name="Solo", code="SOLO")
    values = get_policy_values(company.pk)
    assert values["rounding_method"] == "Round"
    assert values["fallback_to_nearest_rate"] is True
