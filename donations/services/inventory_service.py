"""
Inventory Service - stock created from approved donation items
"""
import logging
from typing import Dict, Any
from django.db import transaction
from django.db.models import F, Value
from django.db.models.functions import Greatest
from django.utils import timezone

from donations.models import InventoryItem, DonationItem
from donations.services.base_service import (
    BaseService, success_response, ValidationError, NotFoundError,
    to_int, to_date, to_datetime, days_until, expiry_window, get_config
)
from donations.services.query_service import QuerySpec, run_query

logger = logging.getLogger(__name__)


class InventoryService(BaseService):
    model = InventoryItem

    query_spec = QuerySpec(
        search_fields=(
            "source_donation_item__product__product_name",
            "source_donation_item__product__category",
            "block_reason",
        ),
        sort_fields={
            "product_name": "source_donation_item__product__product_name",
            "category": "source_donation_item__product__category",
            "quantity_on_hand": "quantity_on_hand",
            "expiration_date": "expiration_date",
            "date_received": "date_received",
            "is_blocked": "is_blocked",
        },
        default_sort="product_name",
    )

    @classmethod
    def base_queryset(cls):
        return cls.model.objects.select_related(
            "source_donation_item__product", "source_donation_item__donation"
        )

    @classmethod
    def serialize(cls, item: InventoryItem) -> Dict[str, Any]:
        product = item.product
        days = days_until(item.expiration_date)
        soon_days = get_config("EXPIRING_SOON_DAYS", 7)
        return {
            "id": item.id,
            "uuid": str(item.uuid),
            "source_donation_item_id": item.source_donation_item_id,
            "donation_id": item.source_donation_item.donation_id,
            "product_id": product.id,
            "product_name": product.product_name,
            "category": product.category,
            "unit_type": item.source_donation_item.unit_type,
            "storage_location_id": item.storage_location_id,
            "quantity_on_hand": item.quantity_on_hand,
            "expiration_date": item.expiration_date.isoformat() if item.expiration_date else None,
            "days_until_expiration": days,
            "is_expiring_soon": days is not None and 0 <= days <= soon_days,
            "is_expired": days is not None and days < 0,
            "date_received": item.date_received.isoformat(),
            "is_blocked": item.is_blocked,
            "block_reason": item.block_reason,
            "created_at": item.created_at.isoformat(),
            "updated_at": item.updated_at.isoformat(),
        }

    @classmethod
    def list(cls,
             page: int = 1,
             per_page: int = None,
             search: str = None,
             sort_by: str = None,
             sort_descending: bool = None,
             product_id: int = None,
             category: str = None,
             expiring_soon: bool = False,
             expired: bool = False,
             blocked: bool = None) -> Dict[str, Any]:
        queryset = cls.base_queryset()
        today, threshold = expiry_window()

        if product_id:
            queryset = queryset.filter(source_donation_item__product_id=product_id)

        if category:
            queryset = queryset.filter(source_donation_item__product__category=category)

        if expiring_soon:
            queryset = queryset.filter(
                expiration_date__isnull=False,
                expiration_date__gte=today,
                expiration_date__lte=threshold,
            )

        if expired:
            queryset = queryset.filter(expiration_date__isnull=False, expiration_date__lt=today)

        if blocked is not None:
            queryset = queryset.filter(is_blocked=blocked)

        result = run_query(queryset, cls.query_spec, search, sort_by, sort_descending, page, per_page)

        return success_response({
            "items": [cls.serialize(i) for i in result.items],
            "pagination": result.pagination(),
        })

    @classmethod
    def _get(cls, item_id: int, lock: bool = False) -> InventoryItem:
        queryset = cls.base_queryset()
        if lock:
            queryset = queryset.select_for_update(of=("self",))
        try:
            return queryset.get(id=item_id)
        except cls.model.DoesNotExist:
            raise NotFoundError("Inventory item", item_id)

    @classmethod
    def get(cls, item_id: int) -> Dict[str, Any]:
        return success_response({"item": cls.serialize(cls._get(item_id))})

    @classmethod
    def expiring_soon(cls, days: int = None) -> Dict[str, Any]:
        """In-stock items expiring between today and today + days."""
        if days is not None:
            days = to_int(days, "days")
            if days < 0:
                raise ValidationError("Days cannot be negative", "days")
        today, threshold = expiry_window(days)

        items = cls.base_queryset().filter(
            expiration_date__isnull=False,
            expiration_date__gte=today,
            expiration_date__lte=threshold,
            quantity_on_hand__gt=0,
        ).order_by("expiration_date", "id")

        return success_response({
            "items": [cls.serialize(i) for i in items],
            "count": items.count(),
            "days": (threshold - today).days,
        })

    @classmethod
    @transaction.atomic
    def create(cls,
               source_donation_item_id: int,
               quantity_on_hand: int,
               storage_location_id: int = None,
               expiration_date=None,
               date_received=None) -> Dict[str, Any]:
        source_id = to_int(source_donation_item_id, "source_donation_item_id")
        try:
            source = DonationItem.objects.select_related("product").get(id=source_id)
        except DonationItem.DoesNotExist:
            raise NotFoundError("Donation item", source_id)

        quantity = to_int(quantity_on_hand, "quantity_on_hand")
        if quantity < 0:
            raise ValidationError("Quantity on hand cannot be negative", "quantity_on_hand")

        item = cls.model.objects.create(
            source_donation_item=source,
            storage_location_id=to_int(storage_location_id, "storage_location_id", required=False),
            quantity_on_hand=quantity,
            expiration_date=to_date(expiration_date, "expiration_date") or source.expiration_date,
            date_received=to_datetime(date_received, "date_received") or timezone.now(),
        )

        logger.info(f"Inventory item {item.id} created from donation item {source.id} ({quantity})")

        return success_response({"id": item.id, "item": cls.serialize(cls._get(item.id))}, "Inventory item created")

    @classmethod
    @transaction.atomic
    def update(cls, item_id: int, **kwargs) -> Dict[str, Any]:
        item = cls._get(item_id, lock=True)
        changed = []

        if "storage_location_id" in kwargs:
            item.storage_location_id = to_int(
                kwargs["storage_location_id"], "storage_location_id", required=False
            )
            changed.append("storage_location_id")

        if kwargs.get("quantity_on_hand") is not None:
            quantity = to_int(kwargs["quantity_on_hand"], "quantity_on_hand")
            if quantity < 0:
                raise ValidationError("Quantity on hand cannot be negative", "quantity_on_hand")
            item.quantity_on_hand = quantity
            changed.append("quantity_on_hand")

        if "expiration_date" in kwargs:
            item.expiration_date = to_date(kwargs["expiration_date"], "expiration_date")
            changed.append("expiration_date")

        # only touched columns, so a concurrent adjust_quantity is never overwritten
        item.save(update_fields=changed + ["updated_at"])
        item.refresh_from_db()

        return success_response({"item": cls.serialize(item)}, "Inventory item updated")

    @classmethod
    @transaction.atomic
    def delete(cls, item_id: int) -> Dict[str, Any]:
        item = cls._get(item_id)
        item.delete()
        logger.info(f"Inventory item {item_id} deleted")
        return success_response({"deleted": True, "id": item_id}, "Inventory item deleted")

    @classmethod
    @transaction.atomic
    def adjust_quantity(cls, item_id: int, delta: int, reason: str = "") -> Dict[str, Any]:
        """
        Add `delta` (may be negative) to the quantity on hand, clamping at zero.

        Runs as one UPDATE so concurrent adjustments never lose each other.
        """
        delta = to_int(delta, "quantity_change")

        before = cls.model.objects.filter(id=item_id).values_list("quantity_on_hand", flat=True).first()
        updated = cls.model.objects.filter(id=item_id).update(
            quantity_on_hand=Greatest(F("quantity_on_hand") + delta, Value(0)),
            updated_at=timezone.now(),
        )
        if not updated:
            raise NotFoundError("Inventory item", item_id)

        item = cls._get(item_id)
        logger.info(
            f"Inventory adjusted for item {item_id}: {before} -> {item.quantity_on_hand}. Reason: {reason}"
        )

        return success_response({
            "item": cls.serialize(item),
            "previous_quantity": before,
        }, "Quantity adjusted")

    @classmethod
    @transaction.atomic
    def block(cls, item_id: int, reason: str) -> Dict[str, Any]:
        if not reason or not reason.strip():
            raise ValidationError("A block reason is required", "reason")

        item = cls._get(item_id)
        item.is_blocked = True
        item.block_reason = reason.strip()[:255]
        item.save(update_fields=["is_blocked", "block_reason", "updated_at"])

        logger.info(f"Inventory item {item_id} blocked: {item.block_reason}")

        return success_response({"item": cls.serialize(item)}, "Inventory item blocked")

    @classmethod
    @transaction.atomic
    def unblock(cls, item_id: int) -> Dict[str, Any]:
        item = cls._get(item_id)
        item.is_blocked = False
        item.block_reason = ""
        item.save(update_fields=["is_blocked", "block_reason", "updated_at"])

        return success_response({"item": cls.serialize(item)}, "Inventory item unblocked")
