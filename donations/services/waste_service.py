from typing import Dict, Any
from django.db import transaction
from django.db.models import Sum

from donations.models import WasteRecord, Product, DonationItem
from donations.services.base_service import (
    BaseService, success_response, ValidationError, NotFoundError,
    to_int, to_datetime
)
from donations.services.query_service import QuerySpec, run_query


class WasteService(BaseService):
    model = WasteRecord

    query_spec = QuerySpec(
        search_fields=("product__product_name", "product__category", "waste_reason", "disposal_method"),
        sort_fields={
            "created_at": "created_at",
            "product_name": "product__product_name",
            "quantity": "quantity",
            "waste_reason": "waste_reason",
            "disposed_at": "disposed_at",
        },
        default_sort="created_at",
        default_descending=True,
    )

    @classmethod
    def serialize(cls, record: WasteRecord) -> Dict[str, Any]:
        return {
            "id": record.id,
            "uuid": str(record.uuid),
            "donation_item_id": record.donation_item_id,
            "product_id": record.product_id,
            "product_name": record.product.product_name,
            "category": record.product.category,
            "quantity": record.quantity,
            "unit_type": record.unit_type,
            "waste_reason": record.waste_reason,
            "disposal_method": record.disposal_method,
            "disposed_at": record.disposed_at.isoformat() if record.disposed_at else None,
            "disposed_by": record.disposed_by,
            "created_at": record.created_at.isoformat(),
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
             waste_reason: str = None,
             start_date=None,
             end_date=None) -> Dict[str, Any]:
        queryset = cls.model.objects.select_related("product")

        if product_id:
            queryset = queryset.filter(product_id=product_id)

        if category:
            queryset = queryset.filter(product__category=category)

        if waste_reason:
            queryset = queryset.filter(waste_reason=waste_reason)

        start_date = to_datetime(start_date, "start_date")
        end_date = to_datetime(end_date, "end_date")

        if start_date:
            queryset = queryset.filter(created_at__gte=start_date)

        if end_date:
            queryset = queryset.filter(created_at__lte=end_date)

        total_quantity = queryset.aggregate(total=Sum("quantity"))["total"] or 0
        result = run_query(queryset, cls.query_spec, search, sort_by, sort_descending, page, per_page)

        return success_response({
            "records": [cls.serialize(r) for r in result.items],
            "pagination": result.pagination(),
            "total_quantity": total_quantity,
        })

    @classmethod
    def _get(cls, record_id: int) -> WasteRecord:
        try:
            return cls.model.objects.select_related("product").get(id=record_id)
        except cls.model.DoesNotExist:
            raise NotFoundError("Waste record", record_id)

    @classmethod
    def get(cls, record_id: int) -> Dict[str, Any]:
        return success_response({"record": cls.serialize(cls._get(record_id))})

    @classmethod
    @transaction.atomic
    def create(cls,
               product_id: int,
               quantity: int,
               waste_reason: str,
               donation_item_id: int = None,
               unit_type: str = "",
               disposal_method: str = "",
               disposed_at=None,
               disposed_by: int = None) -> Dict[str, Any]:
        product_id = to_int(product_id, "product_id")
        try:
            product = Product.objects.get(id=product_id)
        except Product.DoesNotExist:
            raise NotFoundError("Product", product_id)

        quantity = to_int(quantity, "quantity")
        if quantity <= 0:
            raise ValidationError("Quantity must be positive", "quantity")

        if not waste_reason:
            raise ValidationError("Waste reason is required", "waste_reason")

        donation_item = None
        donation_item_id = to_int(donation_item_id, "donation_item_id", required=False)
        if donation_item_id is not None:
            try:
                donation_item = DonationItem.objects.get(id=donation_item_id)
            except DonationItem.DoesNotExist:
                raise NotFoundError("Donation item", donation_item_id)
            if donation_item.product_id != product.id:
                raise ValidationError("Donation item is for a different product", "donation_item_id")

        record = cls.model.objects.create(
            donation_item=donation_item,
            product=product,
            quantity=quantity,
            unit_type=unit_type or (donation_item.unit_type if donation_item else product.default_unit_type),
            waste_reason=waste_reason,
            disposal_method=disposal_method or "",
            disposed_at=to_datetime(disposed_at, "disposed_at"),
            disposed_by=to_int(disposed_by, "disposed_by", required=False),
        )

        return success_response({"id": record.id, "record": cls.serialize(record)}, "Waste record created")

    @classmethod
    @transaction.atomic
    def update(cls, record_id: int, **kwargs) -> Dict[str, Any]:
        record = cls._get(record_id)

        if kwargs.get("quantity") is not None:
            quantity = to_int(kwargs["quantity"], "quantity")
            if quantity <= 0:
                raise ValidationError("Quantity must be positive", "quantity")
            record.quantity = quantity

        if "waste_reason" in kwargs:
            if not kwargs["waste_reason"]:
                raise ValidationError("Waste reason is required", "waste_reason")
            record.waste_reason = kwargs["waste_reason"]

        for field in ["unit_type", "disposal_method"]:
            if field in kwargs and kwargs[field] is not None:
                setattr(record, field, kwargs[field])

        if "disposed_at" in kwargs:
            record.disposed_at = to_datetime(kwargs["disposed_at"], "disposed_at")

        if "disposed_by" in kwargs:
            record.disposed_by = to_int(kwargs["disposed_by"], "disposed_by", required=False)

        record.save()

        return success_response({"record": cls.serialize(record)}, "Waste record updated")

    @classmethod
    @transaction.atomic
    def delete(cls, record_id: int) -> Dict[str, Any]:
        record = cls._get(record_id)
        record.delete()
        return success_response({"deleted": True, "id": record_id}, "Waste record deleted")
