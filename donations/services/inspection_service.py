"""
Quality Inspection Service - at most one inspection per donation item.
"""
import logging
from decimal import Decimal, InvalidOperation
from typing import Dict, Any
from django.db import transaction, IntegrityError

from donations.models import QualityInspection, DonationAuditTrail
from donations.services.base_service import (
    BaseService, success_response, ValidationError, NotFoundError, ConflictError,
    to_int, choice_values
)
from donations.services.audit_service import DonationAuditService
from donations.services.donation_service import DonationService
from donations.services.lifecycle import OPEN_STATUSES

logger = logging.getLogger(__name__)


class QualityInspectionService(BaseService):
    model = QualityInspection

    TEXT_CHECKS = ("packaging_integrity", "product_appearance")
    FLAG_CHECKS = (
        "has_expired_items", "has_allergen_info",
        "has_nutrition_label", "is_from_approved_source",
    )

    @classmethod
    def serialize(cls, inspection: QualityInspection) -> Dict[str, Any]:
        return {
            "id": inspection.id,
            "uuid": str(inspection.uuid),
            "donation_item_id": inspection.donation_item_id,
            "result": inspection.result,
            "result_display": inspection.get_result_display(),
            "quality_rating": inspection.quality_rating,
            "inspection_date": inspection.inspection_date.isoformat(),
            "inspected_by": inspection.inspected_by,
            "packaging_integrity": inspection.packaging_integrity,
            "product_appearance": inspection.product_appearance,
            "temperature_check": str(inspection.temperature_check) if inspection.temperature_check is not None else None,
            "has_expired_items": inspection.has_expired_items,
            "has_allergen_info": inspection.has_allergen_info,
            "has_nutrition_label": inspection.has_nutrition_label,
            "is_from_approved_source": inspection.is_from_approved_source,
            "notes": inspection.notes,
            "decision_reason": inspection.decision_reason,
        }

    @classmethod
    def _clean_checks(cls, checks: Dict[str, Any]) -> Dict[str, Any]:
        allowed = set(cls.TEXT_CHECKS) | set(cls.FLAG_CHECKS) | {"temperature_check"}
        unknown = sorted(set(checks) - allowed)
        if unknown:
            raise ValidationError(f"Unknown inspection fields: {unknown}", unknown[0])

        cleaned = {}
        for name in cls.TEXT_CHECKS:
            if checks.get(name) is not None:
                cleaned[name] = str(checks[name])
        for name in cls.FLAG_CHECKS:
            if checks.get(name) is not None:
                cleaned[name] = bool(checks[name])

        temperature = checks.get("temperature_check")
        if temperature not in (None, ""):
            try:
                cleaned["temperature_check"] = Decimal(str(temperature))
            except InvalidOperation:
                raise ValidationError("Temperature must be a number", "temperature_check")

        return cleaned

    @classmethod
    @transaction.atomic
    def record(cls,
               item_id: int,
               inspected_by: int,
               result: str,
               rating: int = None,
               notes: str = "",
               rejection_reason: str = "",
               **checks) -> Dict[str, Any]:
        """
        Record the inspection of one donation item.

        The item row is locked before the duplicate check; a concurrent insert
        that still loses on the one-to-one column is reported as a conflict.
        The first inspection of a pending donation moves it to INSPECTION.
        """
        inspected_by = to_int(inspected_by, "inspected_by")

        valid_results = choice_values(QualityInspection.Result.choices)
        if result not in valid_results:
            raise ValidationError(f"Invalid result. Valid: {valid_results}", "result")

        if rating is not None and rating != "":
            rating = to_int(rating, "rating")
            if rating < 1 or rating > 5:
                raise ValidationError("Rating must be between 1 and 5", "rating")
        else:
            rating = None

        cleaned = cls._clean_checks(checks)

        item = DonationService.lock_item(item_id)
        if item is None:
            raise NotFoundError("Donation item", item_id)

        if cls.model.objects.filter(donation_item=item).exists():
            raise ConflictError(f"Donation item {item_id} has already been inspected", "inspection")

        donation = DonationService.lock_donation(item.donation_id)
        if donation.status not in OPEN_STATUSES:
            raise NotFoundError(
                "Donation item", item_id,
                f"Donation item {item_id} is not awaiting inspection (donation is {donation.status})",
            )

        try:
            with transaction.atomic():
                inspection = cls.model.objects.create(
                    donation_item=item,
                    inspected_by=inspected_by,
                    result=result,
                    quality_rating=rating,
                    notes=notes or "",
                    decision_reason=rejection_reason or "",
                    **cleaned,
                )
        except IntegrityError:
            raise ConflictError(f"Donation item {item_id} has already been inspected", "inspection")

        donation.inspected_by = inspected_by
        donation.save(update_fields=["inspected_by", "updated_at"])
        old_status, new_status = DonationService.sync_status(donation)

        status_moved = old_status != new_status
        DonationAuditService.record(
            donation,
            DonationAuditTrail.Action.INSPECTION_RECORDED,
            inspected_by,
            f"{item.product.product_name}: {result}"
            + (f" (rating {rating})" if rating else "")
            + (f" - {rejection_reason}" if rejection_reason else ""),
            old_status=old_status if status_moved else "",
            new_status=new_status if status_moved else "",
        )

        logger.info(f"Inspection {result} recorded for item {item.id} of donation {donation.receipt_number}")

        return success_response({
            "inspection": cls.serialize(inspection),
            "donation_status": donation.status,
        }, "Inspection recorded")
