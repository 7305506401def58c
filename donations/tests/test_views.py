import json

from django.test import TestCase
from django.urls import reverse

from donations.models import Donation, InventoryItem
from donations.tests.helpers import (
    STAFF_ID, INSPECTOR_ID, make_donor, make_product, make_donation, item_payload
)


class ApiTestCase(TestCase):

    def post_json(self, url, data):
        return self.client.post(url, data=json.dumps(data), content_type="application/json")

    def put_json(self, url, data):
        return self.client.put(url, data=json.dumps(data), content_type="application/json")


class DonationApiTests(ApiTestCase):

    def setUp(self):
        self.donor = make_donor()
        self.product = make_product()

    def test_full_intake_flow(self):
        response = self.post_json(reverse("donations:donation-list"), {
            "donor_id": self.donor.id,
            "received_by": STAFF_ID,
            "receipt_number": "RCPT-API-1",
            "items": [item_payload(self.product, 10, expires_in=4)],
        })
        self.assertEqual(response.status_code, 201)
        body = response.json()
        self.assertTrue(body["success"])
        donation_id = body["id"]
        item_id = body["donation"]["items"][0]["id"]

        response = self.post_json(reverse("donations:item-inspection", args=[item_id]), {
            "inspected_by": INSPECTOR_ID,
            "result": "CONDITIONAL",
            "rating": 3,
            "rejection_reason": "Crushed packaging",
            "packaging_integrity": "Damaged",
        })
        self.assertEqual(response.status_code, 201)
        self.assertEqual(response.json()["donation_status"], "INSPECTION")

        response = self.post_json(reverse("donations:item-disposition", args=[item_id]), {
            "approved_by": STAFF_ID,
            "disposition_type": "PARTIAL",
            "quantity_approved": 7,
            "quantity_rejected": 2,
        })
        self.assertEqual(response.status_code, 201)
        self.assertEqual(response.json()["donation_status"], "APPROVED")

        response = self.post_json(reverse("donations:donation-receipt", args=[donation_id]), {"issued_by": STAFF_ID})
        self.assertEqual(response.status_code, 201)
        self.assertEqual(response.json()["receipt"]["total_items_approved"], 7)

        response = self.client.get(reverse("donations:donation-audit", args=[donation_id]))
        self.assertEqual(
            [e["action"] for e in response.json()["audit_trail"]],
            ["CREATED", "INSPECTION_RECORDED", "DISPOSITION_RECORDED", "RECEIPT_ISSUED"],
        )

        response = self.client.get(reverse("donations:donation-inspections", args=[donation_id]))
        self.assertEqual(response.json()["count"], 1)

    def test_items_list_and_add(self):
        donation = make_donation(self.donor, [item_payload(self.product, 3)])
        url = reverse("donations:donation-items", args=[donation.id])

        response = self.post_json(url, {"product_id": self.product.id, "quantity_received": 2, "added_by": STAFF_ID})
        self.assertEqual(response.status_code, 201)

        response = self.client.get(url)
        self.assertEqual(response.json()["count"], 2)
        self.assertEqual([i["quantity_received"] for i in response.json()["items"]], [3, 2])

    def test_validation_error_shape(self):
        response = self.post_json(reverse("donations:donation-list"), {
            "donor_id": self.donor.id,
            "received_by": STAFF_ID,
            "items": [],
        })

        self.assertEqual(response.status_code, 400)
        body = response.json()
        self.assertFalse(body["success"])
        self.assertEqual(body["error"]["code"], "VALIDATION_ERROR")
        self.assertEqual(body["error"]["details"]["field"], "items")

    def test_missing_actor_is_rejected(self):
        response = self.post_json(reverse("donations:donation-list"), {
            "donor_id": self.donor.id,
            "items": [item_payload(self.product)],
        })
        self.assertEqual(response.status_code, 400)
        self.assertFalse(Donation.objects.exists())

    def test_not_found(self):
        response = self.client.get(reverse("donations:donation-detail", args=[999]))

        self.assertEqual(response.status_code, 404)
        self.assertEqual(response.json()["error"]["code"], "NOT_FOUND")

    def test_over_allocation_is_bad_request(self):
        donation = make_donation(self.donor, [item_payload(self.product, 10)])
        item = donation.items.get()

        response = self.post_json(reverse("donations:item-disposition", args=[item.id]), {
            "approved_by": STAFF_ID,
            "disposition_type": "PARTIAL",
            "quantity_approved": 8,
            "quantity_rejected": 5,
        })

        self.assertEqual(response.status_code, 400)
        self.assertEqual(response.json()["error"]["details"]["received"], 10)

    def test_second_disposition_is_conflict(self):
        donation = make_donation(self.donor, [item_payload(self.product, 4)])
        url = reverse("donations:item-disposition", args=[donation.items.get().id])
        payload = {"approved_by": STAFF_ID, "disposition_type": "APPROVED_TO_INVENTORY", "quantity_approved": 4}

        self.assertEqual(self.post_json(url, payload).status_code, 201)
        response = self.post_json(url, payload)

        self.assertEqual(response.status_code, 409)
        self.assertEqual(response.json()["error"]["code"], "CONFLICT")

    def test_invalid_transition_is_conflict(self):
        donation = make_donation(self.donor, [item_payload(self.product)])

        response = self.post_json(reverse("donations:donation-status", args=[donation.id]), {
            "status": "ARCHIVED",
            "changed_by": STAFF_ID,
        })

        self.assertEqual(response.status_code, 409)
        self.assertEqual(response.json()["error"]["code"], "INVALID_TRANSITION")

    def test_status_override_cannot_approve_ahead_of_dispositions(self):
        donation = make_donation(self.donor, [item_payload(self.product)])
        url = reverse("donations:donation-status", args=[donation.id])
        self.post_json(url, {"status": "INSPECTION", "changed_by": STAFF_ID})

        response = self.post_json(url, {"status": "APPROVED", "changed_by": STAFF_ID})

        self.assertEqual(response.status_code, 400)
        self.assertEqual(response.json()["error"]["details"]["rule"], "derived_status")
        donation.refresh_from_db()
        self.assertEqual(donation.status, "INSPECTION")

    def test_blank_donation_date_is_bad_request(self):
        donation = make_donation(self.donor, [item_payload(self.product)])

        response = self.put_json(reverse("donations:donation-detail", args=[donation.id]), {
            "donation_date": "",
            "updated_by": STAFF_ID,
        })

        self.assertEqual(response.status_code, 400)
        self.assertEqual(response.json()["error"]["code"], "VALIDATION_ERROR")

    def test_delete_with_stock_is_conflict(self):
        donation = make_donation(self.donor, [item_payload(self.product, 4)])
        self.post_json(reverse("donations:item-disposition", args=[donation.items.get().id]), {
            "approved_by": STAFF_ID, "disposition_type": "APPROVED_TO_INVENTORY", "quantity_approved": 4,
        })

        response = self.client.delete(reverse("donations:donation-detail", args=[donation.id]))

        self.assertEqual(response.status_code, 409)
        self.assertTrue(Donation.objects.filter(id=donation.id).exists())

    def test_list_clamps_page_size(self):
        for n in range(3):
            make_donation(self.donor, [item_payload(self.product)], receipt_number=f"RCPT-{n}")

        response = self.client.get(reverse("donations:donation-list"), {"page_size": 500, "page": 0})

        pagination = response.json()["pagination"]
        self.assertEqual(pagination["page_size"], 100)
        self.assertEqual(pagination["page_number"], 1)
        self.assertEqual(pagination["total_count"], 3)

    def test_list_sort_and_search(self):
        other = make_donor(name="Allotment Society")
        make_donation(self.donor, [item_payload(self.product)], receipt_number="RCPT-A")
        make_donation(other, [item_payload(self.product)], receipt_number="RCPT-B")

        response = self.client.get(reverse("donations:donation-list"), {"sort_by": "DonorName"})
        names = [d["donor"]["name"] for d in response.json()["donations"]]
        self.assertEqual(names, ["Allotment Society", "Corner Bakery"])

        response = self.client.get(reverse("donations:donation-list"), {"search": "allotment"})
        self.assertEqual(response.json()["pagination"]["total_count"], 1)

    def test_bad_query_param_is_bad_request(self):
        response = self.client.get(reverse("donations:donation-list"), {"donor_id": "abc"})
        self.assertEqual(response.status_code, 400)


class StockApiTests(ApiTestCase):

    def setUp(self):
        product = make_product()
        donation = make_donation(make_donor(), [item_payload(product, 10, expires_in=2)])
        self.post_json(reverse("donations:item-disposition", args=[donation.items.get().id]), {
            "approved_by": STAFF_ID, "disposition_type": "APPROVED_TO_INVENTORY", "quantity_approved": 10,
        })
        self.stock = InventoryItem.objects.get()

    def test_adjust_clamps_at_zero(self):
        response = self.post_json(reverse("donations:inventory-adjust", args=[self.stock.id]), {
            "quantity_change": -50, "reason": "Distributed",
        })

        self.assertEqual(response.status_code, 200)
        self.assertEqual(response.json()["item"]["quantity_on_hand"], 0)

    def test_expiring_soon(self):
        response = self.client.get(reverse("donations:inventory-expiring"), {"days": 3})

        self.assertEqual(response.json()["count"], 1)

    def test_block_requires_reason(self):
        url = reverse("donations:inventory-block", args=[self.stock.id])
        self.assertEqual(self.post_json(url, {}).status_code, 400)
        self.assertEqual(self.post_json(url, {"reason": "Recall"}).status_code, 200)

        response = self.client.get(reverse("donations:inventory-list"), {"blocked": "true"})
        self.assertEqual(response.json()["pagination"]["total_count"], 1)

    def test_waste_create(self):
        response = self.post_json(reverse("donations:waste-list"), {
            "product_id": self.stock.product.id,
            "quantity": 2,
            "waste_reason": "Dropped",
            "disposed_by": STAFF_ID,
        })

        self.assertEqual(response.status_code, 201)
        self.assertEqual(response.json()["record"]["disposed_by"], STAFF_ID)

    def test_dashboard(self):
        response = self.client.get(reverse("donations:dashboard"))

        self.assertEqual(response.status_code, 200)
        body = response.json()
        self.assertEqual(body["donations"]["approved_donations"], 1)
        self.assertEqual(body["inventory"]["quantity_on_hand"], 10)
        self.assertEqual(body["donors"]["top_donors"][0]["total_items"], 10)


class CatalogueApiTests(ApiTestCase):

    def test_donor_crud(self):
        response = self.post_json(reverse("donations:donor-list"), {"name": "Hillside Farm", "donor_type": "BUSINESS"})
        self.assertEqual(response.status_code, 201)
        donor_id = response.json()["id"]

        response = self.put_json(reverse("donations:donor-detail", args=[donor_id]), {"city": "York"})
        self.assertEqual(response.json()["donor"]["city"], "York")

        response = self.client.delete(reverse("donations:donor-detail", args=[donor_id]))
        self.assertFalse(response.json()["donor"]["is_active"])

    def test_duplicate_product_code(self):
        url = reverse("donations:product-list")
        self.assertEqual(self.post_json(url, {"product_code": "P-1", "product_name": "Pasta"}).status_code, 201)
        self.assertEqual(self.post_json(url, {"product_code": "P-1", "product_name": "Penne"}).status_code, 409)


class HealthApiTests(TestCase):

    def test_health(self):
        response = self.client.get(reverse("health"))

        self.assertEqual(response.status_code, 200)
        self.assertEqual(response.json()["database"], "ok")
