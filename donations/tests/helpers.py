from datetime import timedelta

from django.utils import timezone

from donations.models import Donor, Product, Donation
from donations.services import DonationService

STAFF_ID = 7
INSPECTOR_ID = 8


def make_donor(name="Corner Bakery", donor_type=Donor.DonorType.BUSINESS, **kwargs):
    return Donor.objects.create(name=name, donor_type=donor_type, **kwargs)


def make_product(code="BRD-001", name="Sourdough Bread", category="Bakery", **kwargs):
    kwargs.setdefault("default_unit_type", "loaf")
    kwargs.setdefault("is_perishable", True)
    return Product.objects.create(product_code=code, product_name=name, category=category, **kwargs)


def item_payload(product, quantity=10, expires_in=None, **kwargs):
    payload = {"product_id": product.id, "quantity_received": quantity, "unit_type": "loaf"}
    if expires_in is not None:
        payload["expiration_date"] = (timezone.now().date() + timedelta(days=expires_in)).isoformat()
    payload.update(kwargs)
    return payload


def make_donation(donor, items, receipt_number="RCPT-0001", **kwargs):
    result = DonationService.create(
        donor_id=donor.id,
        received_by=kwargs.pop("received_by", STAFF_ID),
        items=items,
        receipt_number=receipt_number,
        **kwargs
    )
    return Donation.objects.get(id=result["id"])
