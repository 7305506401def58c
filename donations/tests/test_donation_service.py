from unittest import mock

from django.db import connection
from django.test import TestCase
from django.test.utils import CaptureQueriesContext

from donations.models import (
    Donation, DonationItem, DonationAuditTrail, DonationReceipt, InventoryItem
)
from donations.services import (
    DonationService, DispositionService, DonationReceiptService,
    ValidationError, NotFoundError, ConflictError, InvalidTransitionError, BusinessRuleError,
)
from donations.tests.helpers import (
    STAFF_ID, make_donor, make_product, make_donation, item_payload
)


class DonationCreateTests(TestCase):

    def setUp(self):
        self.donor = make_donor()
        self.bread = make_product()
        self.milk = make_product(code="MLK-001", name="Whole Milk", category="Dairy")

    def test_create_starts_pending_with_items_and_one_audit_entry(self):
        result = DonationService.create(
            donor_id=self.donor.id,
            received_by=STAFF_ID,
            receipt_number="RCPT-100",
            items=[item_payload(self.bread, 10), item_payload(self.milk, 4, unit_type="carton")],
            notes="Morning pickup",
        )

        donation = Donation.objects.get(id=result["id"])
        self.assertEqual(donation.status, Donation.Status.PENDING)
        self.assertEqual(donation.received_by, STAFF_ID)
        self.assertEqual(donation.items.count(), 2)
        self.assertEqual(result["donation"]["total_quantity"], 14)

        entries = list(donation.audit_trail.all())
        self.assertEqual(len(entries), 1)
        self.assertEqual(entries[0].action, DonationAuditTrail.Action.CREATED)
        self.assertEqual(entries[0].new_status, Donation.Status.PENDING)
        self.assertEqual(entries[0].action_by, STAFF_ID)

    def test_receipt_number_is_generated_when_omitted(self):
        result = DonationService.create(
            donor_id=self.donor.id, received_by=STAFF_ID, items=[item_payload(self.bread)]
        )
        self.assertTrue(result["donation"]["receipt_number"].startswith("DON-"))

    def test_unit_type_falls_back_to_product_default(self):
        donation = make_donation(self.donor, [{"product_id": self.bread.id, "quantity_received": 3}])
        self.assertEqual(donation.items.get().unit_type, "loaf")

    def test_unknown_donor(self):
        with self.assertRaises(NotFoundError):
            DonationService.create(donor_id=999, received_by=STAFF_ID, items=[item_payload(self.bread)])

    def test_inactive_donor(self):
        self.donor.is_active = False
        self.donor.save()
        with self.assertRaises(ValidationError) as ctx:
            make_donation(self.donor, [item_payload(self.bread)])
        self.assertEqual(ctx.exception.field, "donor_id")

    def test_items_are_required(self):
        with self.assertRaises(ValidationError):
            make_donation(self.donor, [])

    def test_duplicate_receipt_number(self):
        make_donation(self.donor, [item_payload(self.bread)], receipt_number="RCPT-1")
        with self.assertRaises(ConflictError):
            make_donation(self.donor, [item_payload(self.bread)], receipt_number="RCPT-1")

    def test_actor_is_required(self):
        with self.assertRaises(ValidationError) as ctx:
            DonationService.create(donor_id=self.donor.id, received_by=None, items=[item_payload(self.bread)])
        self.assertEqual(ctx.exception.field, "received_by")

    def test_bad_item_rolls_back_the_whole_donation(self):
        with self.assertRaises(ValidationError):
            make_donation(self.donor, [item_payload(self.bread), item_payload(self.milk, 0)])

        self.assertFalse(Donation.objects.exists())
        self.assertFalse(DonationItem.objects.exists())
        self.assertFalse(DonationAuditTrail.objects.exists())

    def test_inactive_product_is_rejected(self):
        self.milk.is_active = False
        self.milk.save()
        with self.assertRaises(ValidationError):
            make_donation(self.donor, [item_payload(self.milk)])

    def test_expiration_before_manufacture_is_rejected(self):
        with self.assertRaises(ValidationError):
            make_donation(self.donor, [item_payload(
                self.bread, manufacture_date="2026-03-10", expiration_date="2026-03-01"
            )])

    def test_failed_audit_write_rolls_back_the_donation(self):
        with mock.patch(
            "donations.services.audit_service.DonationAuditService.record",
            side_effect=RuntimeError("audit store unavailable"),
        ):
            with self.assertRaises(RuntimeError):
                make_donation(self.donor, [item_payload(self.bread)])

        self.assertFalse(Donation.objects.exists())


class DonationStatusTests(TestCase):

    def setUp(self):
        self.donation = make_donation(make_donor(), [item_payload(make_product())])

    def test_step_by_step_transitions_are_audited(self):
        DonationService.update_status(self.donation.id, Donation.Status.INSPECTION, changed_by=3)
        DispositionService.record(self.donation.items.get().id, "APPROVED_TO_INVENTORY",
                                  approved_by=STAFF_ID, quantity_approved=10)
        DonationService.update_status(self.donation.id, Donation.Status.ARCHIVED, changed_by=3)

        self.donation.refresh_from_db()
        self.assertEqual(self.donation.status, Donation.Status.ARCHIVED)

        changes = self.donation.audit_trail.filter(action=DonationAuditTrail.Action.STATUS_CHANGED)
        self.assertEqual(
            [(e.old_status, e.new_status) for e in changes],
            [("PENDING", "INSPECTION"), ("APPROVED", "ARCHIVED")],
        )

    def test_approve_and_reject_follow_item_dispositions(self):
        DonationService.update_status(self.donation.id, Donation.Status.INSPECTION, changed_by=3)

        for status in (Donation.Status.APPROVED, Donation.Status.REJECTED):
            with self.assertRaises(BusinessRuleError) as ctx:
                DonationService.update_status(self.donation.id, status, changed_by=3)
            self.assertEqual(ctx.exception.details["rule"], "derived_status")

        self.donation.refresh_from_db()
        self.assertEqual(self.donation.status, Donation.Status.INSPECTION)
        self.assertEqual(
            self.donation.audit_trail.filter(action=DonationAuditTrail.Action.STATUS_CHANGED).count(), 1
        )

    def test_skipping_inspection_is_invalid(self):
        with self.assertRaises(InvalidTransitionError):
            DonationService.update_status(self.donation.id, Donation.Status.APPROVED, changed_by=3)

        self.donation.refresh_from_db()
        self.assertEqual(self.donation.status, Donation.Status.PENDING)
        self.assertEqual(self.donation.audit_trail.count(), 1)

    def test_same_state_is_invalid(self):
        with self.assertRaises(InvalidTransitionError):
            DonationService.update_status(self.donation.id, Donation.Status.PENDING, changed_by=3)

    def test_unknown_status(self):
        with self.assertRaises(ValidationError):
            DonationService.update_status(self.donation.id, "LOST", changed_by=3)

    def test_unknown_donation(self):
        with self.assertRaises(NotFoundError):
            DonationService.update_status(999, Donation.Status.INSPECTION, changed_by=3)

    def test_inspector_and_notes_are_recorded(self):
        DonationService.update_status(
            self.donation.id, Donation.Status.INSPECTION, changed_by=3, inspected_by=8, notes="Chilled"
        )
        self.donation.refresh_from_db()
        self.assertEqual(self.donation.inspected_by, 8)
        self.assertEqual(self.donation.notes, "Chilled")

    def test_failed_audit_write_keeps_old_status(self):
        with mock.patch(
            "donations.services.audit_service.DonationAuditService.record",
            side_effect=RuntimeError("audit store unavailable"),
        ):
            with self.assertRaises(RuntimeError):
                DonationService.update_status(self.donation.id, Donation.Status.INSPECTION, changed_by=3)

        self.donation.refresh_from_db()
        self.assertEqual(self.donation.status, Donation.Status.PENDING)


class DonationUpdateTests(TestCase):

    def setUp(self):
        self.product = make_product()
        self.donation = make_donation(make_donor(), [item_payload(self.product)])

    def test_update_writes_one_entry_when_something_changed(self):
        result = DonationService.update(self.donation.id, updated_by=4, notes="Left at back door")

        self.assertEqual(result["changed"], ["notes"])
        entry = self.donation.audit_trail.get(action=DonationAuditTrail.Action.UPDATED)
        self.assertEqual(entry.action_by, 4)

    def test_no_change_no_audit(self):
        DonationService.update(self.donation.id, updated_by=4, notes=self.donation.notes)
        self.assertFalse(self.donation.audit_trail.filter(action=DonationAuditTrail.Action.UPDATED).exists())

    def test_blank_donation_date_is_rejected(self):
        original = self.donation.donation_date

        with self.assertRaises(ValidationError) as ctx:
            DonationService.update(self.donation.id, updated_by=4, donation_date="")
        self.assertEqual(ctx.exception.field, "donation_date")

        self.donation.refresh_from_db()
        self.assertEqual(self.donation.donation_date, original)
        self.assertFalse(self.donation.audit_trail.filter(action=DonationAuditTrail.Action.UPDATED).exists())

    def test_add_item_while_open(self):
        DonationService.add_item(self.donation.id, item_payload(self.product, 2), added_by=4)

        self.assertEqual(self.donation.items.count(), 2)
        self.assertTrue(self.donation.audit_trail.filter(action=DonationAuditTrail.Action.ITEM_ADDED).exists())

    def test_add_item_to_closed_donation(self):
        Donation.objects.filter(id=self.donation.id).update(status=Donation.Status.ARCHIVED)
        with self.assertRaises(ValidationError):
            DonationService.add_item(self.donation.id, item_payload(self.product, 2), added_by=4)


class DonationDeleteTests(TestCase):

    def setUp(self):
        self.product = make_product()
        self.donation = make_donation(make_donor(), [item_payload(self.product, 10)])
        self.item = self.donation.items.get()

    def test_delete_cascades_to_items_receipts_and_audit(self):
        DonationReceiptService.generate(self.donation.id, issued_by=STAFF_ID)

        DonationService.delete(self.donation.id)

        self.assertFalse(Donation.objects.exists())
        self.assertFalse(DonationItem.objects.exists())
        self.assertFalse(DonationReceipt.objects.exists())
        self.assertFalse(DonationAuditTrail.objects.exists())

    def test_delete_is_refused_once_stock_exists(self):
        DispositionService.record(self.item.id, "APPROVED_TO_INVENTORY", approved_by=STAFF_ID, quantity_approved=10)

        with self.assertRaises(ConflictError):
            DonationService.delete(self.donation.id)

        self.assertTrue(Donation.objects.filter(id=self.donation.id).exists())
        self.assertEqual(InventoryItem.objects.count(), 1)

    def test_delete_unknown(self):
        with self.assertRaises(NotFoundError):
            DonationService.delete(999)

    def test_delete_locks_items_before_the_donation(self):
        with CaptureQueriesContext(connection) as ctx:
            DonationService.delete(self.donation.id)

        selects = [q["sql"] for q in ctx.captured_queries if q["sql"].lstrip().upper().startswith("SELECT")]
        self.assertIn('FROM "donations_donationitem"', selects[0])
        self.assertIn('FROM "donations_donation"', selects[1])


class DonationReadTests(TestCase):

    def setUp(self):
        self.donor = make_donor()
        self.product = make_product()
        self.donation = make_donation(self.donor, [item_payload(self.product, 6)])

    def test_get_includes_items_and_audit(self):
        data = DonationService.get(self.donation.id)["donation"]

        self.assertEqual(len(data["items"]), 1)
        self.assertEqual(data["items"][0]["quantity_received"], 6)
        self.assertIsNone(data["items"][0]["disposition"])
        self.assertEqual([e["action"] for e in data["audit_trail"]], ["CREATED"])
        self.assertIsNone(data["receipt"])

    def test_get_unknown(self):
        with self.assertRaises(NotFoundError):
            DonationService.get(999)

    def test_available_items_are_approved_but_not_stocked(self):
        other = make_donation(self.donor, [item_payload(self.product, 3)], receipt_number="RCPT-0002")
        Donation.objects.filter(id=other.id).update(status=Donation.Status.APPROVED)

        result = DonationService.get_available_items()

        self.assertEqual(result["count"], 1)
        self.assertEqual(result["items"][0]["donation_id"], other.id)

    def test_list_filters_by_status_and_donor(self):
        second_donor = make_donor(name="Farm Co-op")
        make_donation(second_donor, [item_payload(self.product)], receipt_number="RCPT-0002")

        by_donor = DonationService.list(donor_id=second_donor.id)
        self.assertEqual(by_donor["pagination"]["total_count"], 1)

        pending = DonationService.list(status=Donation.Status.PENDING)
        self.assertEqual(pending["pagination"]["total_count"], 2)

        approved = DonationService.list(status=Donation.Status.APPROVED)
        self.assertEqual(approved["pagination"]["total_count"], 0)

    def test_list_searches_donor_name(self):
        result = DonationService.list(search="corner")
        self.assertEqual(result["pagination"]["total_count"], 1)
        self.assertEqual(result["donations"][0]["total_quantity"], 6)


class AuditTrailTests(TestCase):

    def setUp(self):
        self.donation = make_donation(make_donor(), [item_payload(make_product())])
        self.entry = self.donation.audit_trail.get()

    def test_entries_cannot_be_edited(self):
        self.entry.details = "rewritten"
        with self.assertRaises(BusinessRuleError):
            self.entry.save()

    def test_entries_cannot_be_deleted(self):
        with self.assertRaises(BusinessRuleError):
            self.entry.delete()

    def test_bulk_update_and_delete_are_refused(self):
        with self.assertRaises(BusinessRuleError):
            DonationAuditTrail.objects.filter(donation=self.donation).update(details="x")
        with self.assertRaises(BusinessRuleError):
            DonationAuditTrail.objects.filter(donation=self.donation).delete()

        self.assertEqual(DonationAuditTrail.objects.get().details, self.entry.details)

    def test_trail_is_returned_oldest_first(self):
        DonationService.update_status(self.donation.id, Donation.Status.INSPECTION, changed_by=3)

        trail = DonationService.get_audit_trail(self.donation.id)

        self.assertEqual(trail["count"], 2)
        self.assertEqual([e["action"] for e in trail["audit_trail"]], ["CREATED", "STATUS_CHANGED"])
        self.assertIsNone(trail["audit_trail"][0]["old_status"])
