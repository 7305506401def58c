from typing import Dict, Any, List
from django.utils import timezone

from donations.models import Donation, DonationAuditTrail
from donations.services.base_service import (
    BaseService, success_response, NotFoundError, ValidationError, to_int
)


class DonationAuditService(BaseService):
    model = DonationAuditTrail

    @classmethod
    def serialize(cls, entry: DonationAuditTrail) -> Dict[str, Any]:
        return {
            "id": entry.id,
            "uuid": str(entry.uuid),
            "donation_id": entry.donation_id,
            "action": entry.action,
            "action_display": entry.get_action_display(),
            "action_by": entry.action_by,
            "action_date": entry.action_date.isoformat(),
            "old_status": entry.old_status or None,
            "new_status": entry.new_status or None,
            "details": entry.details,
        }

    @classmethod
    def record(cls,
               donation: Donation,
               action: str,
               action_by: int,
               details: str = "",
               old_status: str = "",
               new_status: str = "") -> DonationAuditTrail:
        """Append one entry. Callers run this inside their own atomic block."""
        action_by = to_int(action_by, "action_by")
        if action not in DonationAuditTrail.Action.values:
            raise ValidationError(f"Unknown audit action: {action}", "action")

        return cls.model.objects.create(
            donation=donation,
            action=action,
            action_by=action_by,
            action_date=timezone.now(),
            old_status=old_status or "",
            new_status=new_status or "",
            details=details,
        )

    @classmethod
    def for_donation(cls, donation_id: int) -> Dict[str, Any]:
        if not Donation.objects.filter(id=donation_id).exists():
            raise NotFoundError("Donation", donation_id)

        entries: List[DonationAuditTrail] = list(
            cls.model.objects.filter(donation_id=donation_id).order_by("action_date", "id")
        )
        return success_response({
            "audit_trail": [cls.serialize(e) for e in entries],
            "count": len(entries),
        })
