"""
Donor Service - Donor catalogue. Donors are only ever deactivated because
donations keep referencing them.
"""
from typing import Dict, Any
from django.db import transaction

from donations.models import Donor
from donations.services.base_service import (
    BaseService, success_response, ValidationError, choice_values
)
from donations.services.query_service import QuerySpec, run_query


class DonorService(BaseService):
    model = Donor

    query_spec = QuerySpec(
        search_fields=("name", "email", "phone_number", "address"),
        sort_fields={
            "name": "name",
            "donor_type": "donor_type",
            "email": "email",
            "city": "city",
            "is_active": "is_active",
            "created_at": "created_at",
        },
        default_sort="name",
    )

    UPDATABLE_FIELDS = [
        "name", "donor_type", "email", "phone_number",
        "address", "city", "postal_code", "is_active",
    ]

    @classmethod
    def serialize(cls, donor: Donor) -> Dict[str, Any]:
        return {
            "id": donor.id,
            "uuid": str(donor.uuid),
            "name": donor.name,
            "donor_type": donor.donor_type,
            "donor_type_display": donor.get_donor_type_display(),
            "email": donor.email,
            "phone_number": donor.phone_number,
            "address": donor.address,
            "city": donor.city,
            "postal_code": donor.postal_code,
            "is_active": donor.is_active,
            "created_at": donor.created_at.isoformat(),
            "updated_at": donor.updated_at.isoformat(),
        }

    @classmethod
    def list(cls,
             page: int = 1,
             per_page: int = None,
             search: str = None,
             sort_by: str = None,
             sort_descending: bool = None,
             donor_type: str = None,
             is_active: bool = None) -> Dict[str, Any]:
        queryset = cls.model.objects.all()

        if donor_type:
            queryset = queryset.filter(donor_type=donor_type)

        if is_active is not None:
            queryset = queryset.filter(is_active=is_active)

        result = run_query(queryset, cls.query_spec, search, sort_by, sort_descending, page, per_page)

        return success_response({
            "donors": [cls.serialize(d) for d in result.items],
            "pagination": result.pagination(),
            "donor_types": [{"value": c[0], "label": c[1]} for c in Donor.DonorType.choices],
        })

    @classmethod
    def get(cls, donor_id: int) -> Dict[str, Any]:
        donor = cls.get_or_404(donor_id)
        data = cls.serialize(donor)
        data["donation_count"] = donor.donations.count()
        return success_response({"donor": data})

    @classmethod
    def get_active(cls) -> Dict[str, Any]:
        donors = cls.model.objects.filter(is_active=True).order_by("name")
        return success_response({
            "donors": [cls.serialize(d) for d in donors],
            "count": donors.count(),
        })

    @classmethod
    def _validate_type(cls, donor_type: str) -> None:
        valid_types = choice_values(Donor.DonorType.choices)
        if donor_type not in valid_types:
            raise ValidationError(f"Invalid donor type. Valid: {valid_types}", "donor_type")

    @classmethod
    @transaction.atomic
    def create(cls,
               name: str,
               donor_type: str,
               email: str = "",
               phone_number: str = "",
               address: str = "",
               city: str = "",
               postal_code: str = "") -> Dict[str, Any]:
        if not name or not name.strip():
            raise ValidationError("Name is required", "name")
        cls._validate_type(donor_type)

        donor = cls.model.objects.create(
            name=name.strip(),
            donor_type=donor_type,
            email=email or "",
            phone_number=phone_number or "",
            address=address or "",
            city=city or "",
            postal_code=postal_code or "",
        )

        return success_response({
            "id": donor.id,
            "donor": cls.serialize(donor),
        }, f"Donor '{donor.name}' created")

    @classmethod
    @transaction.atomic
    def update(cls, donor_id: int, **kwargs) -> Dict[str, Any]:
        donor = cls.get_or_404(donor_id)

        if "donor_type" in kwargs:
            cls._validate_type(kwargs["donor_type"])
        if "name" in kwargs and not (kwargs["name"] or "").strip():
            raise ValidationError("Name is required", "name")

        for field in cls.UPDATABLE_FIELDS:
            if field not in kwargs:
                continue
            value = kwargs[field]
            if field == "is_active":
                if value is not None:
                    donor.is_active = bool(value)
                continue
            setattr(donor, field, value if value is not None else "")

        donor.save()

        return success_response({"donor": cls.serialize(donor)}, "Donor updated")

    @classmethod
    @transaction.atomic
    def deactivate(cls, donor_id: int) -> Dict[str, Any]:
        donor = cls.get_or_404(donor_id)
        donor.is_active = False
        donor.save(update_fields=["is_active", "updated_at"])
        return success_response({"donor": cls.serialize(donor)}, f"Donor '{donor.name}' deactivated")

