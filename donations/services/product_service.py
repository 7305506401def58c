from typing import Dict, Any
from django.db import transaction

from donations.models import Product
from donations.services.base_service import (
    BaseService, success_response, ValidationError, ConflictError, choice_values
)
from donations.services.query_service import QuerySpec, run_query


class ProductService(BaseService):
    model = Product

    query_spec = QuerySpec(
        search_fields=("product_name", "category", "product_code"),
        sort_fields={
            "product_name": "product_name",
            "product_code": "product_code",
            "category": "category",
            "is_perishable": "is_perishable",
            "is_active": "is_active",
            "created_at": "created_at",
        },
        default_sort="product_name",
    )

    @classmethod
    def serialize(cls, product: Product) -> Dict[str, Any]:
        return {
            "id": product.id,
            "uuid": str(product.uuid),
            "product_code": product.product_code,
            "product_name": product.product_name,
            "category": product.category,
            "default_unit_type": product.default_unit_type,
            "is_perishable": product.is_perishable,
            "optimal_storage_condition": product.optimal_storage_condition,
            "is_active": product.is_active,
            "created_at": product.created_at.isoformat(),
        }

    @classmethod
    def serialize_brief(cls, product: Product) -> Dict[str, Any]:
        return {
            "id": product.id,
            "product_code": product.product_code,
            "product_name": product.product_name,
            "category": product.category,
        }

    @classmethod
    def list(cls,
             page: int = 1,
             per_page: int = None,
             search: str = None,
             sort_by: str = None,
             sort_descending: bool = None,
             category: str = None,
             is_perishable: bool = None,
             is_active: bool = None) -> Dict[str, Any]:
        queryset = cls.model.objects.all()

        if category:
            queryset = queryset.filter(category=category)

        if is_perishable is not None:
            queryset = queryset.filter(is_perishable=is_perishable)

        if is_active is not None:
            queryset = queryset.filter(is_active=is_active)

        result = run_query(queryset, cls.query_spec, search, sort_by, sort_descending, page, per_page)

        return success_response({
            "products": [cls.serialize(p) for p in result.items],
            "pagination": result.pagination(),
        })

    @classmethod
    def get(cls, product_id: int) -> Dict[str, Any]:
        return success_response({"product": cls.serialize(cls.get_or_404(product_id))})

    @classmethod
    def get_active(cls) -> Dict[str, Any]:
        products = cls.model.objects.filter(is_active=True).order_by("product_name")
        return success_response({
            "products": [cls.serialize_brief(p) for p in products],
            "count": products.count(),
        })

    @classmethod
    def _validate_storage(cls, condition: str) -> None:
        if condition and condition not in choice_values(Product.StorageCondition.choices):
            raise ValidationError(
                f"Invalid storage condition. Valid: {choice_values(Product.StorageCondition.choices)}",
                "optimal_storage_condition",
            )

    @classmethod
    @transaction.atomic
    def create(cls,
               product_code: str,
               product_name: str,
               category: str = "",
               default_unit_type: str = "",
               is_perishable: bool = False,
               optimal_storage_condition: str = "") -> Dict[str, Any]:
        if not product_code:
            raise ValidationError("Product code is required", "product_code")
        if not product_name:
            raise ValidationError("Product name is required", "product_name")
        cls._validate_storage(optimal_storage_condition)

        if cls.model.objects.filter(product_code=product_code).exists():
            raise ConflictError(f"Product code '{product_code}' already exists", "product")

        product = cls.model.objects.create(
            product_code=product_code,
            product_name=product_name,
            category=category or "",
            default_unit_type=default_unit_type or "",
            is_perishable=bool(is_perishable),
            optimal_storage_condition=optimal_storage_condition or "",
        )

        return success_response({
            "id": product.id,
            "product": cls.serialize(product),
        }, f"Product '{product_name}' created")

    @classmethod
    @transaction.atomic
    def update(cls, product_id: int, **kwargs) -> Dict[str, Any]:
        product = cls.get_or_404(product_id)

        if "product_code" in kwargs and kwargs["product_code"] != product.product_code:
            if cls.model.objects.filter(product_code=kwargs["product_code"]).exclude(id=product.id).exists():
                raise ConflictError(f"Product code '{kwargs['product_code']}' already exists", "product")

        if "optimal_storage_condition" in kwargs:
            cls._validate_storage(kwargs["optimal_storage_condition"])

        for field in ["product_code", "product_name", "category", "default_unit_type",
                      "optimal_storage_condition"]:
            if field in kwargs and kwargs[field] is not None:
                setattr(product, field, kwargs[field])

        for field in ["is_perishable", "is_active"]:
            if field in kwargs and kwargs[field] is not None:
                setattr(product, field, bool(kwargs[field]))

        product.save()

        return success_response({"product": cls.serialize(product)}, "Product updated")

    @classmethod
    @transaction.atomic
    def deactivate(cls, product_id: int) -> Dict[str, Any]:
        product = cls.get_or_404(product_id)
        product.is_active = False
        product.save(update_fields=["is_active", "updated_at"])
        return success_response({"product": cls.serialize(product)}, "Product deactivated")
