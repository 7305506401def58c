"""
Donation Receipt Service - point-in-time totals issued to the donor.

Totals are a snapshot: later dispositions do not change an issued receipt,
a reissue supersedes it with a new revision instead.
"""
import logging
from typing import Dict, Any, Tuple
from django.db import transaction, IntegrityError
from django.db.models import Sum, Max
from django.utils import timezone

from donations.models import Donation, DonationReceipt, DonationAuditTrail, DonationItem
from donations.services.base_service import (
    BaseService, success_response, NotFoundError, ConflictError, to_int
)
from donations.services.audit_service import DonationAuditService
from donations.services.donation_service import DonationService

logger = logging.getLogger(__name__)


class DonationReceiptService(BaseService):
    model = DonationReceipt

    @classmethod
    def serialize(cls, receipt: DonationReceipt) -> Dict[str, Any]:
        return {
            "id": receipt.id,
            "uuid": str(receipt.uuid),
            "donation_id": receipt.donation_id,
            "receipt_number": receipt.receipt_number,
            "revision": receipt.revision,
            "total_items_received": receipt.total_items_received,
            "total_items_approved": receipt.total_items_approved,
            "generated_at": receipt.generated_at.isoformat(),
            "issued_by": receipt.issued_by,
            "is_current": receipt.is_current,
            "superseded_at": receipt.superseded_at.isoformat() if receipt.superseded_at else None,
            "sent_to_donor": receipt.sent_to_donor,
            "sent_at": receipt.sent_at.isoformat() if receipt.sent_at else None,
        }

    @classmethod
    def compute_totals(cls, donation: Donation) -> Tuple[int, int]:
        totals = DonationItem.objects.filter(donation=donation).aggregate(
            received=Sum("quantity_received"),
            approved=Sum("disposition__quantity_approved"),
        )
        return totals["received"] or 0, totals["approved"] or 0

    @classmethod
    def _current(cls, donation: Donation, lock: bool = False):
        queryset = cls.model.objects.filter(donation=donation, is_current=True)
        if lock:
            queryset = queryset.select_for_update()
        return queryset.first()

    @classmethod
    def _issue(cls, donation: Donation, issued_by: int, revision: int) -> DonationReceipt:
        received, approved = cls.compute_totals(donation)
        try:
            with transaction.atomic():
                return cls.model.objects.create(
                    donation=donation,
                    receipt_number=donation.receipt_number,
                    revision=revision,
                    total_items_received=received,
                    total_items_approved=approved,
                    generated_at=timezone.now(),
                    issued_by=issued_by,
                    is_current=True,
                )
        except IntegrityError:
            raise ConflictError(
                f"A current receipt already exists for donation {donation.receipt_number}",
                "receipt",
            )

    @classmethod
    @transaction.atomic
    def generate(cls, donation_id: int, issued_by: int) -> Dict[str, Any]:
        issued_by = to_int(issued_by, "issued_by")
        donation = DonationService.lock_donation(donation_id)

        if cls._current(donation) is not None:
            raise ConflictError(
                f"A current receipt already exists for donation {donation.receipt_number}",
                "receipt",
            )

        last_revision = donation.receipts.aggregate(last=Max("revision"))["last"] or 0
        receipt = cls._issue(donation, issued_by, last_revision + 1)

        DonationAuditService.record(
            donation,
            DonationAuditTrail.Action.RECEIPT_ISSUED,
            issued_by,
            f"Receipt r{receipt.revision}: {receipt.total_items_received} received, "
            f"{receipt.total_items_approved} approved",
        )

        logger.info(f"Receipt {receipt.receipt_number} r{receipt.revision} issued")

        return success_response({"receipt": cls.serialize(receipt)}, "Receipt generated")

    @classmethod
    @transaction.atomic
    def reissue(cls, donation_id: int, issued_by: int, reason: str = "") -> Dict[str, Any]:
        issued_by = to_int(issued_by, "issued_by")
        donation = DonationService.lock_donation(donation_id)

        previous = cls._current(donation, lock=True)
        if previous is None:
            raise NotFoundError(
                "Receipt", donation_id, f"No current receipt for donation {donation_id}"
            )

        previous.is_current = False
        previous.superseded_at = timezone.now()
        previous.save(update_fields=["is_current", "superseded_at"])

        receipt = cls._issue(donation, issued_by, previous.revision + 1)

        DonationAuditService.record(
            donation,
            DonationAuditTrail.Action.RECEIPT_REISSUED,
            issued_by,
            f"Receipt r{previous.revision} superseded by r{receipt.revision}"
            + (f": {reason}" if reason else ""),
        )

        logger.info(f"Receipt {receipt.receipt_number} reissued as r{receipt.revision}")

        return success_response({
            "receipt": cls.serialize(receipt),
            "superseded": cls.serialize(previous),
        }, "Receipt reissued")

    @classmethod
    @transaction.atomic
    def mark_sent(cls, donation_id: int, sent_by: int) -> Dict[str, Any]:
        sent_by = to_int(sent_by, "sent_by")
        donation = DonationService.lock_donation(donation_id)

        receipt = cls._current(donation, lock=True)
        if receipt is None:
            raise NotFoundError(
                "Receipt", donation_id, f"No current receipt for donation {donation_id}"
            )
        if receipt.sent_to_donor:
            raise ConflictError(f"Receipt r{receipt.revision} was already sent", "receipt")

        receipt.sent_to_donor = True
        receipt.sent_at = timezone.now()
        receipt.save(update_fields=["sent_to_donor", "sent_at"])

        DonationAuditService.record(
            donation,
            DonationAuditTrail.Action.RECEIPT_SENT,
            sent_by,
            f"Receipt r{receipt.revision} sent to donor",
        )

        return success_response({"receipt": cls.serialize(receipt)}, "Receipt marked as sent")

    @classmethod
    def get_current(cls, donation_id: int) -> Dict[str, Any]:
        try:
            donation = Donation.objects.get(id=donation_id)
        except Donation.DoesNotExist:
            raise NotFoundError("Donation", donation_id)

        receipt = cls._current(donation)
        if receipt is None:
            raise NotFoundError(
                "Receipt", donation_id, f"No current receipt for donation {donation_id}"
            )

        return success_response({
            "receipt": cls.serialize(receipt),
            "history": [
                cls.serialize(r) for r in donation.receipts.filter(is_current=False).order_by("-revision")
            ],
        })
