"""
Disposition Service - splits a donation item into approved stock and waste.

    split = reconcile_split(10, 7, 2)   # DispositionSplit(approved=7, rejected=2, unallocated=1)

`reconcile_split` is pure; `DispositionService.record` stores the decision
and materializes at most one InventoryItem and one WasteRecord from it.
"""
import logging
from dataclasses import dataclass
from typing import Dict, Any, Optional
from django.db import transaction, IntegrityError
from django.utils import timezone

from donations.models import (
    DonationDisposition, DonationAuditTrail, InventoryItem, WasteRecord, QualityInspection
)
from donations.services.base_service import (
    BaseService, success_response, ValidationError, NotFoundError, ConflictError,
    to_int, choice_values
)
from donations.services.audit_service import DonationAuditService
from donations.services.donation_service import DonationService
from donations.services.lifecycle import OPEN_STATUSES

logger = logging.getLogger(__name__)

DispositionType = DonationDisposition.DispositionType


@dataclass(frozen=True)
class DispositionSplit:
    approved: int
    rejected: int
    unallocated: int


def _quantity(value: Any, field: str) -> int:
    if value is None or value == "":
        return 0
    value = to_int(value, field)
    if value < 0:
        raise ValidationError(f"{field} cannot be negative", field)
    return value


def reconcile_split(quantity_received: int,
                    quantity_approved: Optional[int] = None,
                    quantity_rejected: Optional[int] = None) -> DispositionSplit:
    approved = _quantity(quantity_approved, "quantity_approved")
    rejected = _quantity(quantity_rejected, "quantity_rejected")

    if approved + rejected > quantity_received:
        raise ValidationError(
            f"Approved ({approved}) plus rejected ({rejected}) exceeds "
            f"quantity received ({quantity_received})",
            "quantity_approved",
            {"received": quantity_received, "approved": approved, "rejected": rejected},
        )

    return DispositionSplit(
        approved=approved,
        rejected=rejected,
        unallocated=quantity_received - approved - rejected,
    )


def _check_type(disposition_type: str, split: DispositionSplit) -> None:
    if disposition_type == DispositionType.APPROVED_TO_INVENTORY and split.rejected:
        raise ValidationError(
            "A full approval cannot reject any quantity", "quantity_rejected"
        )
    if disposition_type == DispositionType.REJECTED_TO_WASTE and split.approved:
        raise ValidationError(
            "A full rejection cannot approve any quantity", "quantity_approved"
        )


class DispositionService(BaseService):
    model = DonationDisposition

    @classmethod
    def serialize(cls, disposition: DonationDisposition) -> Dict[str, Any]:
        return {
            "id": disposition.id,
            "uuid": str(disposition.uuid),
            "donation_item_id": disposition.donation_item_id,
            "disposition_type": disposition.disposition_type,
            "disposition_type_display": disposition.get_disposition_type_display(),
            "reason": disposition.reason,
            "quantity_approved": disposition.quantity_approved,
            "quantity_rejected": disposition.quantity_rejected,
            "approved_at": disposition.approved_at.isoformat(),
            "approved_by": disposition.approved_by,
            "is_reconciled": disposition.is_reconciled,
        }

    @classmethod
    def _waste_reason(cls, item, disposition: DonationDisposition) -> str:
        if disposition.reason:
            return disposition.reason[:100]
        try:
            inspection_reason = item.inspection.decision_reason
        except QualityInspection.DoesNotExist:
            inspection_reason = ""
        if inspection_reason:
            return inspection_reason[:100]
        return disposition.get_disposition_type_display()

    @classmethod
    @transaction.atomic
    def record(cls,
               item_id: int,
               disposition_type: str,
               approved_by: int,
               quantity_approved: int = None,
               quantity_rejected: int = None,
               reason: str = "",
               storage_location_id: int = None) -> Dict[str, Any]:
        approved_by = to_int(approved_by, "approved_by")
        storage_location_id = to_int(storage_location_id, "storage_location_id", required=False)

        valid_types = choice_values(DispositionType.choices)
        if disposition_type not in valid_types:
            raise ValidationError(f"Invalid disposition type. Valid: {valid_types}", "disposition_type")

        item = DonationService.lock_item(item_id)
        if item is None:
            raise NotFoundError("Donation item", item_id)

        if cls.model.objects.filter(donation_item=item).exists():
            raise ConflictError(f"Donation item {item_id} already has a disposition", "disposition")

        donation = DonationService.lock_donation(item.donation_id)
        if donation.status not in OPEN_STATUSES:
            raise NotFoundError(
                "Donation item", item_id,
                f"Donation item {item_id} is not awaiting disposition (donation is {donation.status})",
            )

        split = reconcile_split(item.quantity_received, quantity_approved, quantity_rejected)
        _check_type(disposition_type, split)

        now = timezone.now()
        try:
            with transaction.atomic():
                disposition = cls.model.objects.create(
                    donation_item=item,
                    disposition_type=disposition_type,
                    reason=reason or "",
                    quantity_approved=split.approved,
                    quantity_rejected=split.rejected,
                    approved_at=now,
                    approved_by=approved_by,
                    is_reconciled=True,
                )
        except IntegrityError:
            raise ConflictError(f"Donation item {item_id} already has a disposition", "disposition")

        inventory_item = None
        if split.approved > 0:
            inventory_item = InventoryItem.objects.create(
                source_donation_item=item,
                storage_location_id=storage_location_id,
                quantity_on_hand=split.approved,
                expiration_date=item.expiration_date,
                date_received=now,
                is_blocked=False,
            )

        waste_record = None
        if split.rejected > 0:
            waste_record = WasteRecord.objects.create(
                donation_item=item,
                product=item.product,
                quantity=split.rejected,
                unit_type=item.unit_type,
                waste_reason=cls._waste_reason(item, disposition),
                disposed_at=now,
                disposed_by=approved_by,
            )

        old_status, new_status = DonationService.sync_status(donation)
        status_moved = old_status != new_status

        DonationAuditService.record(
            donation,
            DonationAuditTrail.Action.DISPOSITION_RECORDED,
            approved_by,
            f"{item.product.product_name}: {split.approved} approved, "
            f"{split.rejected} rejected of {item.quantity_received}",
            old_status=old_status if status_moved else "",
            new_status=new_status if status_moved else "",
        )

        logger.info(
            f"Disposition {disposition_type} for item {item.id} of donation {donation.receipt_number}: "
            f"{split.approved}/{split.rejected}/{split.unallocated}"
        )
        if status_moved:
            logger.info(f"Donation {donation.receipt_number} status {old_status} -> {new_status}")

        return success_response({
            "disposition": cls.serialize(disposition),
            "split": {
                "approved": split.approved,
                "rejected": split.rejected,
                "unallocated": split.unallocated,
            },
            "inventory_item_id": inventory_item.id if inventory_item else None,
            "waste_record_id": waste_record.id if waste_record else None,
            "donation_status": donation.status,
        }, "Disposition recorded")
