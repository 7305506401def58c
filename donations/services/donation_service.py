"""
Donation Service - intake and lifecycle of donations.

Every mutating method runs in one transaction together with the audit entry
it appends, so a failed audit write rolls the mutation back as well.
"""
import logging
from typing import Dict, Any, Optional, List, Tuple
from django.db import transaction, IntegrityError
from django.db.models import Sum, ProtectedError
from django.utils import timezone

from donations.models import (
    Donation, DonationItem, DonationAuditTrail, Donor, Product, InventoryItem,
    QualityInspection
)
from donations.services.base_service import (
    BaseService, success_response, ValidationError, NotFoundError, ConflictError,
    to_int, to_date, to_datetime, generate_number, choice_values
)
from donations.services.audit_service import DonationAuditService
from donations.services.lifecycle import (
    OPEN_STATUSES, check_manual_transition, derive_donation_status, item_states
)
from donations.services.query_service import QuerySpec, run_query

logger = logging.getLogger(__name__)


class DonationService(BaseService):
    model = Donation

    query_spec = QuerySpec(
        search_fields=("donor__name", "status", "notes", "receipt_number"),
        sort_fields={
            "donation_date": "donation_date",
            "receipt_number": "receipt_number",
            "status": "status",
            "donor_name": "donor__name",
            "created_at": "created_at",
            "updated_at": "updated_at",
        },
        default_sort="donation_date",
        default_descending=True,
    )

    # ==================== SERIALIZATION ====================

    @classmethod
    def serialize_item(cls, item: DonationItem) -> Dict[str, Any]:
        inspection = getattr(item, "inspection", None)
        disposition = getattr(item, "disposition", None)
        return {
            "id": item.id,
            "uuid": str(item.uuid),
            "donation_id": item.donation_id,
            "product_id": item.product_id,
            "product": {
                "id": item.product.id,
                "product_code": item.product.product_code,
                "product_name": item.product.product_name,
                "category": item.product.category,
            },
            "quantity_received": item.quantity_received,
            "unit_type": item.unit_type,
            "expiration_date": item.expiration_date.isoformat() if item.expiration_date else None,
            "manufacture_date": item.manufacture_date.isoformat() if item.manufacture_date else None,
            "batch_number": item.batch_number,
            "storage_condition": item.storage_condition,
            "notes": item.notes,
            "inspection": {
                "id": inspection.id,
                "result": inspection.result,
                "quality_rating": inspection.quality_rating,
            } if inspection else None,
            "disposition": {
                "id": disposition.id,
                "disposition_type": disposition.disposition_type,
                "quantity_approved": disposition.quantity_approved,
                "quantity_rejected": disposition.quantity_rejected,
            } if disposition else None,
            "created_at": item.created_at.isoformat(),
        }

    @classmethod
    def serialize(cls, donation: Donation, include_items: bool = False) -> Dict[str, Any]:
        data = {
            "id": donation.id,
            "uuid": str(donation.uuid),
            "donor_id": donation.donor_id,
            "donor": {
                "id": donation.donor.id,
                "name": donation.donor.name,
                "donor_type": donation.donor.donor_type,
            },
            "donation_date": donation.donation_date.isoformat(),
            "receipt_number": donation.receipt_number,
            "status": donation.status,
            "status_display": donation.get_status_display(),
            "received_by": donation.received_by,
            "inspected_by": donation.inspected_by,
            "notes": donation.notes,
            "created_at": donation.created_at.isoformat(),
            "updated_at": donation.updated_at.isoformat(),
        }

        if include_items:
            items = donation.items.select_related("product", "inspection", "disposition")
            data["items"] = [cls.serialize_item(i) for i in items]
            data["item_count"] = len(data["items"])
            data["total_quantity"] = sum(i["quantity_received"] for i in data["items"])

        return data

    @classmethod
    def serialize_brief(cls, donation: Donation) -> Dict[str, Any]:
        return {
            "id": donation.id,
            "receipt_number": donation.receipt_number,
            "donor_id": donation.donor_id,
            "donor_name": donation.donor.name,
            "donation_date": donation.donation_date.isoformat(),
            "status": donation.status,
            "item_count": getattr(donation, "item_count", None),
            "total_quantity": getattr(donation, "total_quantity", None) or 0,
        }

    # ==================== LIST & GET ====================

    @classmethod
    def list(cls,
             page: int = 1,
             per_page: int = None,
             search: str = None,
             sort_by: str = None,
             sort_descending: bool = None,
             donor_id: int = None,
             status: str = None,
             start_date=None,
             end_date=None) -> Dict[str, Any]:
        queryset = cls.model.objects.select_related("donor")

        if donor_id and donor_id > 0:
            queryset = queryset.filter(donor_id=donor_id)

        if status:
            queryset = queryset.filter(status=status)

        start_date = to_datetime(start_date, "start_date")
        end_date = to_datetime(end_date, "end_date")

        if start_date:
            queryset = queryset.filter(donation_date__gte=start_date)

        if end_date:
            queryset = queryset.filter(donation_date__lte=end_date)

        result = run_query(queryset, cls.query_spec, search, sort_by, sort_descending, page, per_page)

        totals = dict(
            DonationItem.objects.filter(donation__in=[d.id for d in result.items])
            .values_list("donation_id")
            .annotate(total=Sum("quantity_received"))
        )
        donations = []
        for donation in result.items:
            data = cls.serialize(donation)
            data["total_quantity"] = totals.get(donation.id, 0)
            donations.append(data)

        return success_response({
            "donations": donations,
            "pagination": result.pagination(),
            "statuses": [{"value": c[0], "label": c[1]} for c in Donation.Status.choices],
        })

    @classmethod
    def _get_donation(cls, donation_id: int, lock: bool = False) -> Donation:
        queryset = cls.model.objects.select_related("donor")
        if lock:
            queryset = queryset.select_for_update(of=("self",))
        try:
            return queryset.get(id=donation_id)
        except cls.model.DoesNotExist:
            raise NotFoundError("Donation", donation_id)

    @classmethod
    def get(cls, donation_id: int) -> Dict[str, Any]:
        donation = cls._get_donation(donation_id)
        data = cls.serialize(donation, include_items=True)

        receipt = donation.receipts.filter(is_current=True).first()
        data["receipt"] = {
            "id": receipt.id,
            "receipt_number": receipt.receipt_number,
            "revision": receipt.revision,
            "total_items_received": receipt.total_items_received,
            "total_items_approved": receipt.total_items_approved,
        } if receipt else None

        data["audit_trail"] = [
            DonationAuditService.serialize(e)
            for e in donation.audit_trail.order_by("action_date", "id")
        ]

        return success_response({"donation": data})

    @classmethod
    def get_items(cls, donation_id: int) -> Dict[str, Any]:
        donation = cls._get_donation(donation_id)
        items = donation.items.select_related("product", "inspection", "disposition")
        return success_response({
            "items": [cls.serialize_item(i) for i in items],
            "count": items.count(),
        })

    @classmethod
    def get_inspections(cls, donation_id: int) -> Dict[str, Any]:
        from donations.services.inspection_service import QualityInspectionService

        donation = cls._get_donation(donation_id)
        inspections = QualityInspection.objects.filter(
            donation_item__donation=donation
        ).select_related("donation_item__product").order_by("inspection_date", "id")
        return success_response({
            "inspections": [QualityInspectionService.serialize(i) for i in inspections],
            "count": inspections.count(),
        })

    @classmethod
    def get_audit_trail(cls, donation_id: int) -> Dict[str, Any]:
        return DonationAuditService.for_donation(donation_id)

    @classmethod
    def get_available_items(cls) -> Dict[str, Any]:
        """Items of approved donations that have not been put into inventory yet."""
        stocked = InventoryItem.objects.values_list("source_donation_item_id", flat=True)
        items = (
            DonationItem.objects.select_related("product", "donation")
            .filter(donation__status=Donation.Status.APPROVED)
            .exclude(id__in=stocked)
            .order_by("expiration_date", "id")
        )
        return success_response({
            "items": [
                {
                    "donation_item_id": i.id,
                    "donation_id": i.donation_id,
                    "product_id": i.product_id,
                    "product_name": i.product.product_name,
                    "quantity": i.quantity_received,
                    "unit_type": i.unit_type,
                    "expiration_date": i.expiration_date.isoformat() if i.expiration_date else None,
                }
                for i in items
            ],
            "count": items.count(),
        })

    # ==================== CREATE ====================

    @classmethod
    def _build_item(cls, donation: Donation, data: Dict[str, Any], index: int) -> DonationItem:
        prefix = f"items[{index}]"

        product_id = to_int(data.get("product_id"), f"{prefix}.product_id")
        try:
            product = Product.objects.get(id=product_id, is_active=True)
        except Product.DoesNotExist:
            raise ValidationError(f"Unknown product: {product_id}", f"{prefix}.product_id")

        quantity = to_int(data.get("quantity_received"), f"{prefix}.quantity_received")
        if quantity <= 0:
            raise ValidationError("Quantity received must be positive", f"{prefix}.quantity_received")

        unit_type = data.get("unit_type") or product.default_unit_type
        if not unit_type:
            raise ValidationError("Unit type is required", f"{prefix}.unit_type")

        storage_condition = data.get("storage_condition") or ""
        valid_conditions = choice_values(Product.StorageCondition.choices)
        if storage_condition and storage_condition not in valid_conditions:
            raise ValidationError(
                f"Invalid storage condition. Valid: {valid_conditions}",
                f"{prefix}.storage_condition",
            )

        expiration_date = to_date(data.get("expiration_date"), f"{prefix}.expiration_date")
        manufacture_date = to_date(data.get("manufacture_date"), f"{prefix}.manufacture_date")
        if expiration_date and manufacture_date and expiration_date < manufacture_date:
            raise ValidationError(
                "Expiration date cannot precede manufacture date",
                f"{prefix}.expiration_date",
            )

        return DonationItem(
            donation=donation,
            product=product,
            quantity_received=quantity,
            unit_type=unit_type,
            expiration_date=expiration_date,
            manufacture_date=manufacture_date,
            batch_number=data.get("batch_number") or "",
            storage_condition=storage_condition,
            notes=data.get("notes") or "",
        )

    @classmethod
    @transaction.atomic
    def create(cls,
               donor_id: int,
               received_by: int,
               items: List[Dict[str, Any]],
               receipt_number: str = None,
               donation_date=None,
               notes: str = "") -> Dict[str, Any]:
        received_by = to_int(received_by, "received_by")
        donor_id = to_int(donor_id, "donor_id")

        try:
            donor = Donor.objects.get(id=donor_id)
        except Donor.DoesNotExist:
            raise NotFoundError("Donor", donor_id)

        if not donor.is_active:
            raise ValidationError(f"Donor '{donor.name}' is inactive", "donor_id")

        if not items:
            raise ValidationError("A donation needs at least one item", "items")

        if receipt_number:
            if cls.model.objects.filter(receipt_number=receipt_number).exists():
                raise ConflictError(
                    f"Receipt number '{receipt_number}' is already used by another donation",
                    "donation",
                )
        else:
            receipt_number = generate_number("DON", cls.model)

        donation = cls.model(
            donor=donor,
            donation_date=to_datetime(donation_date, "donation_date") or timezone.now(),
            receipt_number=receipt_number,
            status=Donation.Status.PENDING,
            received_by=received_by,
            notes=notes or "",
        )

        try:
            with transaction.atomic():
                donation.save()
        except IntegrityError:
            raise ConflictError(
                f"Receipt number '{receipt_number}' is already used by another donation",
                "donation",
            )

        built = [cls._build_item(donation, data, index) for index, data in enumerate(items)]
        for item in built:
            item.save()

        DonationAuditService.record(
            donation,
            DonationAuditTrail.Action.CREATED,
            received_by,
            f"Donation created with {len(built)} item(s)",
            new_status=donation.status,
        )

        logger.info(f"Donation {donation.receipt_number} created for donor {donor.id} with {len(built)} item(s)")

        return success_response({
            "id": donation.id,
            "donation": cls.serialize(donation, include_items=True),
        }, f"Donation {donation.receipt_number} created")

    @classmethod
    @transaction.atomic
    def add_item(cls, donation_id: int, item: Dict[str, Any], added_by: int) -> Dict[str, Any]:
        added_by = to_int(added_by, "added_by")
        donation = cls._get_donation(donation_id, lock=True)

        if donation.status not in OPEN_STATUSES:
            raise ValidationError(
                f"Cannot add items to a donation in {donation.status}", "status"
            )

        new_item = cls._build_item(donation, item or {}, 0)
        new_item.save()
        donation.save(update_fields=["updated_at"])

        DonationAuditService.record(
            donation,
            DonationAuditTrail.Action.ITEM_ADDED,
            added_by,
            f"Added {new_item.quantity_received} {new_item.unit_type} of {new_item.product.product_name}",
        )

        logger.info(f"Item {new_item.id} added to donation {donation.receipt_number}")

        return success_response({
            "item": cls.serialize_item(new_item),
        }, "Item added")

    # ==================== UPDATE ====================

    @classmethod
    @transaction.atomic
    def update(cls,
               donation_id: int,
               updated_by: int,
               notes: str = None,
               donation_date=None,
               inspected_by: int = None) -> Dict[str, Any]:
        updated_by = to_int(updated_by, "updated_by")
        donation = cls._get_donation(donation_id, lock=True)

        changes = []
        if notes is not None and notes != donation.notes:
            donation.notes = notes
            changes.append("notes")

        if donation_date is not None:
            new_date = to_datetime(donation_date, "donation_date")
            if new_date is None:
                raise ValidationError("Donation date cannot be blank", "donation_date")
            if new_date != donation.donation_date:
                donation.donation_date = new_date
                changes.append("donation_date")

        if inspected_by is not None:
            inspected_by = to_int(inspected_by, "inspected_by")
            if inspected_by != donation.inspected_by:
                donation.inspected_by = inspected_by
                changes.append("inspected_by")

        if changes:
            donation.save()
            DonationAuditService.record(
                donation,
                DonationAuditTrail.Action.UPDATED,
                updated_by,
                f"Updated {', '.join(changes)}",
            )

        return success_response({
            "donation": cls.serialize(donation, include_items=True),
            "changed": changes,
        }, "Donation updated" if changes else "No changes")

    @classmethod
    @transaction.atomic
    def update_status(cls,
                      donation_id: int,
                      new_status: str,
                      changed_by: int,
                      inspected_by: int = None,
                      notes: str = None) -> Dict[str, Any]:
        changed_by = to_int(changed_by, "changed_by")
        donation = cls._get_donation(donation_id, lock=True)
        old_status = donation.status

        check_manual_transition(old_status, new_status, item_states(donation))

        donation.status = new_status
        if inspected_by is not None:
            donation.inspected_by = to_int(inspected_by, "inspected_by")
        if notes is not None:
            donation.notes = notes
        donation.save()

        DonationAuditService.record(
            donation,
            DonationAuditTrail.Action.STATUS_CHANGED,
            changed_by,
            f"Status changed from {old_status} to {new_status}",
            old_status=old_status,
            new_status=new_status,
        )

        logger.info(f"Donation {donation.receipt_number} status {old_status} -> {new_status} by user {changed_by}")

        return success_response({
            "donation": cls.serialize(donation),
        }, f"Status changed to {donation.get_status_display()}")

    @classmethod
    def sync_status(cls, donation: Donation) -> Tuple[str, str]:
        """Recompute the derived status. Caller must hold the donation lock."""
        old_status = donation.status
        new_status = derive_donation_status(old_status, item_states(donation))
        if new_status != old_status:
            donation.status = new_status
            donation.save(update_fields=["status", "updated_at"])
        return old_status, new_status

    # ==================== DELETE ====================

    @classmethod
    @transaction.atomic
    def delete(cls, donation_id: int) -> Dict[str, Any]:
        # lock order: items, then donation
        list(
            DonationItem.objects.select_for_update()
            .filter(donation_id=donation_id)
            .order_by("id")
            .values_list("id", flat=True)
        )
        donation = cls._get_donation(donation_id, lock=True)
        receipt_number = donation.receipt_number

        try:
            donation.delete()
        except ProtectedError:
            raise ConflictError(
                f"Donation {receipt_number} has stock in inventory and cannot be deleted",
                "donation",
            )

        logger.warning(f"Donation {receipt_number} (id={donation_id}) hard-deleted")

        return success_response({"deleted": True, "id": donation_id}, f"Donation {receipt_number} deleted")

    @classmethod
    def lock_donation(cls, donation_id: int) -> Donation:
        return cls._get_donation(donation_id, lock=True)

    @classmethod
    def lock_item(cls, item_id: int) -> Optional[DonationItem]:
        try:
            return (
                DonationItem.objects.select_for_update(of=("self",))
                .select_related("donation", "product")
                .get(id=item_id)
            )
        except DonationItem.DoesNotExist:
            return None
