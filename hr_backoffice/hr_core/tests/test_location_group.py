from django.test import TestCase

from hr_core.exceptions import ConflictError, InvalidInput, RecordNotFound
from hr_core.models import Company, LocationGroupMapping
from hr_core.services.expense_category import create_category
from hr_core.services.location_group import (check_usage,
                                             create_location_group,
                                             delete_location_group,
                                             generate_code,
                                             get_location_group_details,
                                             list_location_groups,
                                             update_location_group)


class LocationGroupTests(TestCase):
    def setUp(self):
        self.company = Company.objects.create(name="Acme", code="ACME")

    def _create(self, name, **extra):
        return create_location_group({"name": name, **extra}, self.company.pk, user_id=1)

    def test_codes_are_generated_in_sequence(self):
        self.assertEqual(generate_code(self.company.pk), {"code": "LG001"})
        first = self._create("Metro")
        second = self._create("Tier 2")

        self.assertEqual((first["code"], second["code"]), ("LG001", "LG002"))
        self.assertTrue(first["code_generated"])
        self.assertEqual(first["cost_of_living_index"], "Medium")

    def test_sequence_is_per_company(self):
        other = Company.objects.create(name="Other", code="OTHER")
        self._create("Metro")
        self.assertEqual(create_location_group({"name": "Metro"}, other.pk)["code"], "LG001")

    def test_deleted_codes_are_not_reused(self):
        first = self._create("Metro")
        delete_location_group(first["id"], self.company.pk)
        self.assertEqual(self._create("Metro again")["code"], "LG002")

    def test_free_custom_code_is_kept(self):
        group = self._create("Metro", code="metro")
        self.assertEqual(group["code"], "METRO")
        self.assertFalse(group["code_generated"])

    def test_taken_code_falls_back_to_generated(self):
        self._create("Metro", code="METRO")
        group = self._create("Metro 2", code="METRO")
        self.assertEqual(group["code"], "LG001")
        self.assertTrue(group["code_generated"])

    def test_name_required_and_index_validated(self):
        with self.assertRaises(InvalidInput):
            self._create("   ")
        with self.assertRaises(InvalidInput):
            self._create("Metro", cost_of_living_index="Extreme")

    def test_locations_from_parallel_arrays(self):
        group = self._create(
            "North metros", country_ids=[1, 1], state_ids=[10], city_ids=[100, 200]
        )
        self.assertEqual(
            [(l["country_id"], l["state_id"], l["city_id"]) for l in group["locations"]],
            [(1, 10, 100), (1, None, 200)],
        )

    def test_locations_from_objects(self):
        group = self._create("Mumbai pin codes", locations=[{"postal_code_range": "400001-400099"}])
        self.assertEqual(group["locations"][0]["postal_code_range"], "400001-400099")

    def test_empty_location_rejected(self):
        with self.assertRaises(InvalidInput):
            self._create("Nowhere", locations=[{}])
        self.assertFalse(LocationGroupMapping.objects.exists())

    def test_update_replaces_locations(self):
        group = self._create("Metro", locations=[{"city_id": 100}, {"city_id": 200}])
        keep = group["locations"][0]

        updated = update_location_group(
            {
                "location_group_id": group["id"],
                "cost_of_living_index": "High",
                "locations": [{"id": keep["id"], "city_id": 101}, {"city_id": 300}],
            },
            self.company.pk,
        )

        self.assertEqual(updated["cost_of_living_index"], "High")
        self.assertEqual([l["city_id"] for l in updated["locations"]], [101, 300])
        self.assertEqual(updated["locations"][0]["id"], keep["id"])

    def test_update_without_locations_keeps_them(self):
        group = self._create("Metro", locations=[{"city_id": 100}])
        updated = update_location_group({"location_group_id": group["id"], "name": "Metros"}, self.company.pk)
        self.assertEqual(len(updated["locations"]), 1)

    def test_update_code_conflict(self):
        self._create("Metro", code="METRO")
        other = self._create("Tier 2")
        with self.assertRaises(ConflictError):
            update_location_group({"location_group_id": other["id"], "code": "metro"}, self.company.pk)

    def test_delete_blocked_while_used_by_limits(self):
        group = self._create("Metro")
        create_category(
            {"code": "HOTEL", "name": "Hotel",
             "limits": [{"limit_type": "Location_Based", "location_group_id": group["id"], "limit_per_day": "3000"}]},
            self.company.pk,
        )

        usage = check_usage(group["id"], self.company.pk)
        self.assertFalse(usage["can_delete"])
        self.assertEqual(usage["category_limits_count"], 1)
        self.assertEqual(usage["categories"][0]["code"], "HOTEL")

        with self.assertRaises(ConflictError) as ctx:
            delete_location_group(group["id"], self.company.pk)
        self.assertEqual(str(ctx.exception), "Cannot delete location group as it is used in 1 category limit(s)")

    def test_delete_unused_group(self):
        group = self._create("Metro")
        self.assertTrue(check_usage(group["id"], self.company.pk)["can_delete"])
        delete_location_group(group["id"], self.company.pk, user_id=6)
        with self.assertRaises(RecordNotFound):
            get_location_group_details(group["id"], self.company.pk)

    def test_list_counts(self):
        self._create("Metro", locations=[{"city_id": 1}, {"city_id": 2}])
        self._create("Rural", cost_of_living_index="Low")

        rows, pagination = list_location_groups({}, self.company.pk)
        self.assertEqual(pagination["total"], 2)
        self.assertEqual([(r["name"], r["locations_count"]) for r in rows], [("Metro", 2), ("Rural", 0)])

        rows, _ = list_location_groups({"cost_of_living_index": "Low"}, self.company.pk)
        self.assertEqual([r["name"] for r in rows], ["Rural"])
