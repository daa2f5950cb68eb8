from decimal import Decimal

from django.core.exceptions import ValidationError
from django.test import TestCase

from hr_core.exceptions import ConflictError, InvalidInput, RecordNotFound
from hr_core.models import (CategoryCustomField, CategoryLimit, Company,
                            ExpenseCategory, Grade)
from hr_core.services.expense_category import (clone_category,
                                               create_category,
                                               delete_category,
                                               get_category_details,
                                               get_category_dropdown_data,
                                               get_category_hierarchy,
                                               list_categories,
                                               manage_category_limits,
                                               manage_custom_fields,
                                               reorder_categories,
                                               update_category,
                                               update_filing_rules)
from hr_core.services.location_group import create_location_group


class ExpenseCategoryTests(TestCase):
    def setUp(self):
        self.company = Company.objects.create(name="Acme", code="ACME")
        self.grade = Grade.objects.create(company=self.company, code="G1", name="Associate", level=1)
        self.metro = create_location_group({"name": "Metro cities"}, self.company.pk)

    def _create(self, code, name=None, **extra):
        return create_category({"code": code, "name": name or code.title(), **extra}, self.company.pk, user_id=1)

    def _travel(self):
        return self._create(
            "travel",
            "Travel",
            limits=[
                {"limit_type": "Global", "limit_per_day": "500.00"},
                {"limit_type": "Grade_Based", "grade_id": self.grade.pk, "limit_per_day": "1000"},
            ],
            custom_fields=[
                {"field_name": "project", "field_label": "Project", "field_type": "Text"},
                {"field_name": "mode", "field_label": "Mode", "field_type": "Dropdown",
                 "dropdown_options": ["Air", "Rail"]},
            ],
            filing_rules={"max_past_days": 60},
        )

    # ---------- create ----------
    def test_create_with_children(self):
        travel = self._travel()

        self.assertEqual(travel["code"], "TRAVEL")
        self.assertEqual(travel["expense_type"], "Amount")
        self.assertEqual(travel["receipt_required"], "Above_Limit")
        self.assertEqual([l["limit_per_day"] for l in travel["limits"]], [Decimal("500.00"), Decimal("1000")])
        self.assertEqual([f["field_name"] for f in travel["custom_fields"]], ["project", "mode"])
        self.assertEqual(travel["filing_rules"]["max_past_days"], 60)
        self.assertEqual(travel["filing_rules"]["duplicate_check_fields"], ["amount", "date"])

    def test_code_is_unique_among_live_categories(self):
        first = self._create("MEALS")
        with self.assertRaises(ConflictError):
            self._create("meals")
        delete_category(first["id"], self.company.pk)
        self._create("MEALS")

    def test_type_specific_rate_required(self):
        with self.assertRaises(InvalidInput) as ctx:
            self._create("FUEL", expense_type="Mileage")
        self.assertEqual(str(ctx.exception), "Mileage rate per km is required for mileage type categories")
        with self.assertRaises(InvalidInput):
            self._create("DA", expense_type="Per_Diem")
        with self.assertRaises(InvalidInput):
            self._create("OT", expense_type="Time_Based")

        fuel = self._create("FUEL", expense_type="Mileage", mileage_rate_per_km="8.50")
        self.assertEqual(fuel["mileage_rate_per_km"], Decimal("8.50"))
        self.assertFalse(ExpenseCategory.objects.filter(code="DA").exists())

    def test_duplicate_custom_field_names_rejected(self):
        with self.assertRaises(InvalidInput) as ctx:
            self._create("HOTEL", custom_fields=[
                {"field_name": "city", "field_label": "City", "field_type": "Text"},
                {"field_name": "city", "field_label": "City again", "field_type": "Text"},
            ])
        self.assertEqual(str(ctx.exception), "Duplicate custom field name: city")
        self.assertFalse(ExpenseCategory.objects.exists())

    def test_invalid_child_rolls_back_category(self):
        with self.assertRaises(ValidationError):
            self._create("HOTEL", limits=[{"limit_type": "Location_Based", "limit_per_day": "10"}])
        self.assertFalse(ExpenseCategory.objects.filter(code="HOTEL").exists())

    def test_parent_must_exist_in_company(self):
        other = Company.objects.create(name="Other", code="OTHER")
        foreign = create_category({"code": "X", "name": "X"}, other.pk)
        with self.assertRaises(RecordNotFound):
            self._create("LOCAL", parent_id=foreign["id"])

    def test_limit_refs_must_belong_to_company(self):
        other = Company.objects.create(name="Other", code="OTHER")
        foreign_group = create_location_group({"name": "Elsewhere"}, other.pk)
        with self.assertRaises(RecordNotFound):
            self._create("HOTEL", limits=[
                {"limit_type": "Location_Based", "location_group_id": foreign_group["id"]},
            ])

    # ---------- update ----------
    def test_update_replaces_child_collections(self):
        travel = self._travel()
        global_limit, grade_limit = travel["limits"]

        updated = update_category(
            {
                "category_id": travel["id"],
                "description": "Business travel",
                "limits": [
                    {"id": global_limit["id"], "limit_per_day": "700"},
                    {"limit_type": "Location_Based", "location_group_id": self.metro["id"],
                     "limit_per_month": "5000"},
                ],
            },
            self.company.pk,
            user_id=2,
        )

        self.assertEqual(updated["description"], "Business travel")
        self.assertEqual(len(updated["limits"]), 2)
        self.assertEqual(updated["limits"][0]["id"], global_limit["id"])
        self.assertEqual(updated["limits"][0]["limit_per_day"], Decimal("700"))
        self.assertEqual(updated["limits"][1]["location_group_id"], self.metro["id"])
        self.assertFalse(CategoryLimit.objects.filter(pk=grade_limit["id"]).exists())
        # untouched collections stay as they were
        self.assertEqual(len(updated["custom_fields"]), 2)

    def test_update_can_reuse_removed_field_name(self):
        travel = self._travel()
        updated = update_category(
            {"category_id": travel["id"], "custom_fields": [
                {"field_name": "project", "field_label": "Project code", "field_type": "Number"},
            ]},
            self.company.pk,
        )
        self.assertEqual([(f["field_name"], f["field_type"]) for f in updated["custom_fields"]],
                         [("project", "Number")])

    def test_update_rejects_child_of_another_category(self):
        travel = self._travel()
        meals = self._create("MEALS", limits=[{"limit_type": "Global", "limit_per_day": "50"}])
        with self.assertRaises(InvalidInput):
            update_category(
                {"category_id": travel["id"], "limits": [{"id": meals["limits"][0]["id"], "limit_per_day": "1"}]},
                self.company.pk,
            )

    def test_parent_cannot_create_cycle(self):
        parent = self._create("TRAVEL")
        child = self._create("AIR", parent_id=parent["id"])
        with self.assertRaises(InvalidInput):
            update_category({"category_id": parent["id"], "parent_id": child["id"]}, self.company.pk)

    # ---------- delete ----------
    def test_delete_blocked_by_sub_categories(self):
        parent = self._create("TRAVEL")
        child = self._create("AIR", parent_id=parent["id"])

        with self.assertRaises(ConflictError):
            delete_category(parent["id"], self.company.pk)

        delete_category(child["id"], self.company.pk, user_id=3)
        delete_category(parent["id"], self.company.pk, user_id=3)
        self.assertEqual(ExpenseCategory.objects.for_company(self.company).alive().count(), 0)
        with self.assertRaises(RecordNotFound):
            get_category_details(parent["id"], self.company.pk)

    # ---------- children one at a time ----------
    def test_manage_limits(self):
        meals = self._create("MEALS")

        limits = manage_category_limits(
            {"action": "add", "category_id": meals["id"], "limit": {"limit_type": "Global", "limit_per_day": "40"}},
            self.company.pk,
        )
        self.assertEqual(len(limits), 1)
        limit_id = limits[0]["id"]

        limits = manage_category_limits(
            {"action": "update", "category_id": meals["id"], "limit_id": limit_id,
             "limit": {"limit_per_day": "45"}},
            self.company.pk,
        )
        self.assertEqual(limits[0]["limit_per_day"], Decimal("45"))

        limits = manage_category_limits(
            {"action": "delete", "category_id": meals["id"], "limit_id": limit_id}, self.company.pk
        )
        self.assertEqual(limits, [])

        with self.assertRaises(RecordNotFound):
            manage_category_limits(
                {"action": "delete", "category_id": meals["id"], "limit_id": limit_id}, self.company.pk
            )
        with self.assertRaises(InvalidInput):
            manage_category_limits({"action": "replace", "category_id": meals["id"]}, self.company.pk)

    def test_manage_custom_fields_keeps_names_unique(self):
        travel = self._travel()
        with self.assertRaises(ConflictError):
            manage_custom_fields(
                {"action": "add", "category_id": travel["id"],
                 "custom_field": {"field_name": "project", "field_label": "P", "field_type": "Text"}},
                self.company.pk,
            )
        with self.assertRaises(ValidationError):
            manage_custom_fields(
                {"action": "add", "category_id": travel["id"],
                 "custom_field": {"field_name": "seat", "field_label": "Seat", "field_type": "Dropdown"}},
                self.company.pk,
            )
        self.assertEqual(CategoryCustomField.objects.filter(category_id=travel["id"]).count(), 2)

    def test_update_filing_rules_upserts(self):
        meals = self._create("MEALS")
        rule = update_filing_rules(
            {"category_id": meals["id"], "filing_rules": {"max_past_days": 15, "claims_period": "Month"}},
            self.company.pk,
        )
        self.assertEqual(rule["max_past_days"], 15)

        rule = update_filing_rules(
            {"category_id": meals["id"], "filing_rules": {"allow_weekend_expenses": False}}, self.company.pk
        )
        self.assertEqual(rule["max_past_days"], 15)
        self.assertFalse(rule["allow_weekend_expenses"])

        with self.assertRaises(InvalidInput):
            update_filing_rules(
                {"category_id": meals["id"], "filing_rules": {"claims_period": "Decade"}}, self.company.pk
            )

    # ---------- clone / reorder / tree ----------
    def test_clone_copies_children(self):
        travel = self._travel()

        clone = clone_category({"category_id": travel["id"], "new_code": "travel2"}, self.company.pk, user_id=5)

        self.assertEqual(clone["code"], "TRAVEL2")
        self.assertEqual(clone["name"], "Travel (Copy)")
        self.assertEqual(clone["created_by"], 5)
        self.assertEqual(len(clone["limits"]), 2)
        self.assertEqual([f["field_name"] for f in clone["custom_fields"]], ["project", "mode"])
        self.assertEqual(clone["filing_rules"]["max_past_days"], 60)
        # source keeps its own rows
        self.assertEqual(CategoryLimit.objects.filter(category_id=travel["id"]).count(), 2)

        with self.assertRaises(ConflictError):
            clone_category({"category_id": travel["id"], "new_code": "TRAVEL"}, self.company.pk)

    def test_reorder(self):
        a = self._create("A")
        b = self._create("B")
        result = reorder_categories(
            {"category_orders": [{"category_id": a["id"], "display_order": 2},
                                 {"id": b["id"], "display_order": 1}]},
            self.company.pk,
        )
        self.assertEqual(result["updated_count"], 2)
        rows, _ = list_categories({}, self.company.pk)
        self.assertEqual([r["code"] for r in rows], ["B", "A"])

        with self.assertRaises(RecordNotFound):
            reorder_categories({"category_orders": [{"category_id": 999999, "display_order": 1}]}, self.company.pk)
        with self.assertRaises(InvalidInput):
            reorder_categories({"category_orders": []}, self.company.pk)

    def test_hierarchy_nests_children(self):
        travel = self._create("TRAVEL")
        self._create("AIR", parent_id=travel["id"], display_order=1)
        self._create("RAIL", parent_id=travel["id"], display_order=2)
        self._create("MEALS")

        tree = get_category_hierarchy({}, self.company.pk)
        self.assertEqual([n["code"] for n in tree], ["MEALS", "TRAVEL"])
        travel_node = tree[1]
        self.assertEqual([c["code"] for c in travel_node["children"]], ["AIR", "RAIL"])

    def test_list_counts_and_filters(self):
        travel = self._travel()
        self._create("AIR", parent_id=travel["id"])
        self._create("FUEL", expense_type="Mileage", mileage_rate_per_km="9")

        rows, pagination = list_categories({"root_only": True}, self.company.pk)
        self.assertEqual(pagination["total"], 2)
        by_code = {r["code"]: r for r in rows}
        self.assertEqual(by_code["TRAVEL"]["sub_categories_count"], 1)
        self.assertEqual(by_code["TRAVEL"]["limits_count"], 2)
        self.assertEqual(by_code["TRAVEL"]["custom_fields_count"], 2)

        rows, _ = list_categories({"expense_type": "Mileage"}, self.company.pk)
        self.assertEqual([r["code"] for r in rows], ["FUEL"])
        rows, _ = list_categories({"parent_id": travel["id"]}, self.company.pk)
        self.assertEqual([r["parent"]["code"] for r in rows], ["TRAVEL"])

    def test_dropdown(self):
        self._create("MEALS")
        data = get_category_dropdown_data(self.company.pk)
        self.assertEqual([c["code"] for c in data["categories"]], ["MEALS"])
        self.assertEqual(data["location_groups"][0]["id"], self.metro["id"])
        self.assertEqual(data["grades"][0]["code"], "G1")
        self.assertIn({"value": "Per_Diem", "label": "Per Diem"}, data["expense_types"])
