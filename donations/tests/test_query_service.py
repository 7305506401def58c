from django.test import TestCase, override_settings

from donations.models import Donor
from donations.services import DonorService, DonationService
from donations.services.query_service import (
    MAX_PAGE_SIZE, QuerySpec, clamp_page, run_query
)
from donations.tests.helpers import make_donor


class ClampPageTests(TestCase):

    def test_defaults_to_configured_page_size(self):
        self.assertEqual(clamp_page(1, None), (1, 10))

    @override_settings(FOODBRIDGE={"DEFAULT_PAGE_SIZE": 25})
    def test_default_page_size_comes_from_settings(self):
        self.assertEqual(clamp_page(1, None), (1, 25))

    def test_page_size_is_capped(self):
        self.assertEqual(clamp_page(1, 500), (1, MAX_PAGE_SIZE))

    def test_page_number_and_size_floor_at_one(self):
        self.assertEqual(clamp_page(0, 0), (1, 1))
        self.assertEqual(clamp_page(-3, -10), (1, 1))

    def test_garbage_values_fall_back(self):
        self.assertEqual(clamp_page("abc", "xyz"), (1, 10))


class QuerySpecTests(TestCase):

    def test_sort_names_ignore_case_and_underscores(self):
        spec = DonationService.query_spec
        self.assertEqual(spec.resolve_sort("DonorName"), "donor__name")
        self.assertEqual(spec.resolve_sort("donor_name"), "donor__name")
        self.assertEqual(spec.resolve_sort("DONATIONDATE"), "donation_date")

    def test_unknown_sort_name_resolves_to_nothing(self):
        self.assertIsNone(DonationService.query_spec.resolve_sort("password"))
        self.assertIsNone(QuerySpec().resolve_sort(None))


class PaginationTests(TestCase):

    @classmethod
    def setUpTestData(cls):
        for i in range(1, 24):
            make_donor(name=f"Donor {i:02d}", donor_type=Donor.DonorType.INDIVIDUAL)

    def test_twenty_three_records_in_pages_of_ten(self):
        sizes = []
        for page in (1, 2, 3):
            result = DonorService.list(page=page, per_page=10)
            sizes.append(len(result["donors"]))
            self.assertEqual(result["pagination"]["total_count"], 23)
            self.assertEqual(result["pagination"]["total_pages"], 3)

        self.assertEqual(sizes, [10, 10, 3])

    def test_page_flags(self):
        first = DonorService.list(page=1, per_page=10)["pagination"]
        last = DonorService.list(page=3, per_page=10)["pagination"]

        self.assertTrue(first["has_next"])
        self.assertFalse(first["has_previous"])
        self.assertFalse(last["has_next"])
        self.assertTrue(last["has_previous"])

    def test_page_beyond_the_end_is_empty(self):
        result = DonorService.list(page=9, per_page=10)
        self.assertEqual(result["donors"], [])
        self.assertEqual(result["pagination"]["total_count"], 23)

    def test_oversized_page_is_clamped(self):
        result = DonorService.list(page=1, per_page=500)
        self.assertEqual(result["pagination"]["page_size"], 100)
        self.assertEqual(len(result["donors"]), 23)

    def test_pages_partition_the_result_set(self):
        # every donor shares the same type, so only the pk tiebreaker orders them
        seen = []
        for page in (1, 2, 3):
            result = DonorService.list(page=page, per_page=10, sort_by="DonorType")
            seen.extend(d["id"] for d in result["donors"])

        self.assertEqual(len(seen), 23)
        self.assertEqual(set(seen), set(Donor.objects.values_list("id", flat=True)))

    def test_default_sort_is_by_name(self):
        names = [d["name"] for d in DonorService.list(per_page=5)["donors"]]
        self.assertEqual(names, ["Donor 01", "Donor 02", "Donor 03", "Donor 04", "Donor 05"])

    def test_descending_sort(self):
        names = [d["name"] for d in DonorService.list(per_page=3, sort_by="name", sort_descending=True)["donors"]]
        self.assertEqual(names, ["Donor 23", "Donor 22", "Donor 21"])

    def test_unknown_sort_orders_by_primary_key(self):
        spec = QuerySpec(search_fields=("name",), sort_fields={"name": "name"})
        page = run_query(Donor.objects.all(), spec, sort_by="nonexistent", page_size=100)
        ids = [d.id for d in page.items]
        self.assertEqual(ids, sorted(ids))

    def test_search_is_case_insensitive_substring(self):
        result = DonorService.list(search="DONOR 1", per_page=100)
        self.assertEqual(result["pagination"]["total_count"], 10)

    def test_blank_search_matches_everything(self):
        result = DonorService.list(search="   ", per_page=100)
        self.assertEqual(result["pagination"]["total_count"], 23)

    def test_search_runs_after_filters(self):
        Donor.objects.filter(name="Donor 11").update(is_active=False)
        result = DonorService.list(search="donor 1", is_active=True, per_page=100)
        self.assertEqual(result["pagination"]["total_count"], 9)
