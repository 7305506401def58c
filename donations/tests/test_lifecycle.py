from django.test import SimpleTestCase

from donations.models import Donation
from donations.services import BusinessRuleError, InvalidTransitionError, ValidationError
from donations.services.disposition_service import DispositionSplit, reconcile_split
from donations.services.lifecycle import (
    ItemState, check_manual_transition, check_transition, derive_donation_status
)

Status = Donation.Status


class DeriveStatusTests(SimpleTestCase):

    def test_untouched_items_keep_pending(self):
        items = [ItemState(inspected=False, dispositioned=False)]
        self.assertEqual(derive_donation_status(Status.PENDING, items), Status.PENDING)

    def test_first_inspection_moves_to_inspection(self):
        items = [
            ItemState(inspected=True, dispositioned=False),
            ItemState(inspected=False, dispositioned=False),
        ]
        self.assertEqual(derive_donation_status(Status.PENDING, items), Status.INSPECTION)

    def test_partially_dispositioned_stays_in_inspection(self):
        items = [
            ItemState(inspected=True, dispositioned=True, quantity_approved=4),
            ItemState(inspected=False, dispositioned=False),
        ]
        self.assertEqual(derive_donation_status(Status.INSPECTION, items), Status.INSPECTION)

    def test_all_dispositioned_with_approval_is_approved(self):
        items = [
            ItemState(inspected=True, dispositioned=True, quantity_approved=0),
            ItemState(inspected=False, dispositioned=True, quantity_approved=3),
        ]
        self.assertEqual(derive_donation_status(Status.INSPECTION, items), Status.APPROVED)

    def test_all_dispositioned_without_approval_is_rejected(self):
        items = [ItemState(inspected=True, dispositioned=True, quantity_approved=0)]
        self.assertEqual(derive_donation_status(Status.INSPECTION, items), Status.REJECTED)

    def test_closed_donations_never_move(self):
        items = [ItemState(inspected=True, dispositioned=True, quantity_approved=0)]
        for status in (Status.APPROVED, Status.REJECTED, Status.ARCHIVED):
            self.assertEqual(derive_donation_status(status, items), status)

    def test_no_items_keeps_status(self):
        self.assertEqual(derive_donation_status(Status.PENDING, []), Status.PENDING)


class TransitionTests(SimpleTestCase):

    def test_allowed_transitions(self):
        for current, requested in [
            (Status.PENDING, Status.INSPECTION),
            (Status.INSPECTION, Status.APPROVED),
            (Status.INSPECTION, Status.REJECTED),
            (Status.APPROVED, Status.ARCHIVED),
            (Status.REJECTED, Status.ARCHIVED),
        ]:
            check_transition(current, requested)

    def test_skipping_a_step_is_rejected(self):
        with self.assertRaises(InvalidTransitionError) as ctx:
            check_transition(Status.PENDING, Status.APPROVED)
        self.assertEqual(ctx.exception.current, Status.PENDING)
        self.assertEqual(ctx.exception.requested, Status.APPROVED)

    def test_same_state_is_rejected(self):
        with self.assertRaises(InvalidTransitionError):
            check_transition(Status.INSPECTION, Status.INSPECTION)

    def test_archived_is_terminal(self):
        for requested in (Status.PENDING, Status.INSPECTION, Status.APPROVED, Status.REJECTED):
            with self.assertRaises(InvalidTransitionError):
                check_transition(Status.ARCHIVED, requested)

    def test_unknown_status_is_a_validation_error(self):
        with self.assertRaises(ValidationError):
            check_transition(Status.PENDING, "SHIPPED")


class ManualTransitionTests(SimpleTestCase):

    def test_approval_needs_every_item_dispositioned(self):
        items = [
            ItemState(inspected=True, dispositioned=True, quantity_approved=2),
            ItemState(inspected=True, dispositioned=False),
        ]
        with self.assertRaises(BusinessRuleError) as ctx:
            check_manual_transition(Status.INSPECTION, Status.APPROVED, items)
        self.assertEqual(ctx.exception.details["rule"], "derived_status")

    def test_rejection_cannot_override_approved_stock(self):
        items = [ItemState(inspected=True, dispositioned=True, quantity_approved=5)]
        with self.assertRaises(BusinessRuleError):
            check_manual_transition(Status.INSPECTION, Status.REJECTED, items)
        check_manual_transition(Status.INSPECTION, Status.APPROVED, items)

    def test_rejection_when_nothing_was_approved(self):
        items = [ItemState(inspected=True, dispositioned=True, quantity_approved=0)]
        check_manual_transition(Status.INSPECTION, Status.REJECTED, items)

    def test_non_derived_moves_only_check_the_graph(self):
        check_manual_transition(Status.PENDING, Status.INSPECTION, [])
        check_manual_transition(Status.REJECTED, Status.ARCHIVED, [])
        with self.assertRaises(InvalidTransitionError):
            check_manual_transition(Status.PENDING, Status.APPROVED, [])


class ReconcileSplitTests(SimpleTestCase):

    def test_split_with_remainder(self):
        self.assertEqual(reconcile_split(10, 7, 2), DispositionSplit(approved=7, rejected=2, unallocated=1))

    def test_exact_split(self):
        self.assertEqual(reconcile_split(10, 10, 0), DispositionSplit(10, 0, 0))

    def test_omitted_quantities_default_to_zero(self):
        self.assertEqual(reconcile_split(5), DispositionSplit(0, 0, 5))
        self.assertEqual(reconcile_split(5, None, 5), DispositionSplit(0, 5, 0))

    def test_over_allocation_is_rejected(self):
        with self.assertRaises(ValidationError) as ctx:
            reconcile_split(10, 8, 5)
        self.assertEqual(ctx.exception.details["received"], 10)

    def test_negative_quantities_are_rejected(self):
        with self.assertRaises(ValidationError):
            reconcile_split(10, -1, 0)
        with self.assertRaises(ValidationError):
            reconcile_split(10, 0, -1)

    def test_non_numeric_quantity_is_rejected(self):
        with self.assertRaises(ValidationError):
            reconcile_split(10, "seven", 0)
