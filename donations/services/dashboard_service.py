"""
Dashboard Service - headline statistics for the dashboard
"""
from datetime import timedelta
from decimal import Decimal
from typing import Dict, Any, List
from django.db.models import Count, Sum, Q
from django.db.models.functions import TruncMonth
from django.utils import timezone

from donations.models import (
    Donation, DonationItem, Donor, Product, InventoryItem, WasteRecord, DonationAuditTrail
)
from donations.services.base_service import success_response, expiry_window


def percentage_change(current: int, previous: int) -> str:
    if previous <= 0:
        return "0.00"
    change = (Decimal(current - previous) / Decimal(previous)) * 100
    return str(change.quantize(Decimal("0.01")))


def _period_counts(queryset, field: str):
    """Counts for the last 30 days and the 30 days before."""
    now = timezone.now()
    month_ago = now - timedelta(days=30)
    two_months_ago = now - timedelta(days=60)
    current = queryset.filter(**{f"{field}__gte": month_ago}).count()
    previous = queryset.filter(**{f"{field}__gte": two_months_ago, f"{field}__lt": month_ago}).count()
    return current, previous


class DashboardService:

    @classmethod
    def donation_stats(cls) -> Dict[str, Any]:
        by_status = dict(
            Donation.objects.values_list("status").annotate(total=Count("id"))
        )
        total_items = DonationItem.objects.aggregate(total=Sum("quantity_received"))["total"] or 0
        current, previous = _period_counts(Donation.objects.all(), "donation_date")

        return {
            "total_donations": sum(by_status.values()),
            "pending_donations": by_status.get(Donation.Status.PENDING, 0),
            "in_inspection": by_status.get(Donation.Status.INSPECTION, 0),
            "approved_donations": by_status.get(Donation.Status.APPROVED, 0),
            "rejected_donations": by_status.get(Donation.Status.REJECTED, 0),
            "total_items_donated": total_items,
            "percentage_change": percentage_change(current, previous),
            "monthly_trend": cls.monthly_trend(),
        }

    @classmethod
    def monthly_trend(cls, months: int = 12) -> List[Dict[str, Any]]:
        since = timezone.now() - timedelta(days=months * 31)
        rows = (
            Donation.objects.filter(donation_date__gte=since)
            .annotate(month=TruncMonth("donation_date"))
            .values("month")
            .annotate(donation_count=Count("id", distinct=True), item_count=Sum("items__quantity_received"))
            .order_by("month")
        )
        return [
            {
                "year": row["month"].year,
                "month": row["month"].month,
                "month_name": row["month"].strftime("%b"),
                "donation_count": row["donation_count"],
                "item_count": row["item_count"] or 0,
            }
            for row in rows
        ]

    @classmethod
    def inventory_stats(cls) -> Dict[str, Any]:
        today, threshold = expiry_window()
        stats = InventoryItem.objects.aggregate(
            total_items=Count("id"),
            expiring_soon=Count("id", filter=Q(expiration_date__gte=today, expiration_date__lte=threshold)),
            expired=Count("id", filter=Q(expiration_date__lt=today)),
            blocked_items=Count("id", filter=Q(is_blocked=True)),
            quantity_on_hand=Sum("quantity_on_hand"),
        )
        stats["quantity_on_hand"] = stats["quantity_on_hand"] or 0
        stats["total_products"] = Product.objects.filter(is_active=True).count()
        current, previous = _period_counts(InventoryItem.objects.all(), "date_received")
        stats["percentage_change"] = percentage_change(current, previous)
        return stats

    @classmethod
    def waste_stats(cls) -> Dict[str, Any]:
        totals = WasteRecord.objects.aggregate(records=Count("id"), quantity=Sum("quantity"))
        wasted = totals["quantity"] or 0
        received = DonationItem.objects.aggregate(total=Sum("quantity_received"))["total"] or 0
        top_reason = (
            WasteRecord.objects.exclude(waste_reason="")
            .values("waste_reason")
            .annotate(total=Count("id"))
            .order_by("-total", "waste_reason")
            .first()
        )
        current, previous = _period_counts(WasteRecord.objects.all(), "disposed_at")

        waste_percentage = Decimal("0.00")
        if received:
            waste_percentage = (Decimal(wasted) / Decimal(received) * 100).quantize(Decimal("0.01"))

        return {
            "total_waste_records": totals["records"],
            "total_quantity_wasted": wasted,
            "waste_percentage": str(waste_percentage),
            "percentage_change": percentage_change(current, previous),
            "top_waste_reason": top_reason["waste_reason"] if top_reason else None,
        }

    @classmethod
    def donor_stats(cls, top: int = 5) -> Dict[str, Any]:
        now = timezone.now()
        start_of_month = now.replace(day=1, hour=0, minute=0, second=0, microsecond=0)
        current, previous = _period_counts(Donor.objects.all(), "created_at")

        top_donors = (
            Donor.objects.annotate(
                total_donations=Count("donations", distinct=True),
                total_items=Sum("donations__items__quantity_received"),
            )
            .filter(total_donations__gt=0)
            .order_by("-total_donations", "name")[:top]
        )

        return {
            "total_donors": Donor.objects.count(),
            "active_donors": Donor.objects.filter(is_active=True).count(),
            "new_donors_this_month": Donor.objects.filter(created_at__gte=start_of_month).count(),
            "percentage_change": percentage_change(current, previous),
            "top_donors": [
                {
                    "donor_id": d.id,
                    "donor_name": d.name,
                    "total_donations": d.total_donations,
                    "total_items": d.total_items or 0,
                }
                for d in top_donors
            ],
        }

    @classmethod
    def recent_activity(cls, limit: int = 10) -> List[Dict[str, Any]]:
        entries = DonationAuditTrail.objects.select_related("donation").order_by("-action_date", "-id")[:limit]
        return [
            {
                "activity_type": e.get_action_display(),
                "description": e.details,
                "performed_by": e.action_by,
                "activity_date": e.action_date.isoformat(),
                "status": e.donation.status,
                "related_id": e.donation_id,
            }
            for e in entries
        ]

    @classmethod
    def get_statistics(cls) -> Dict[str, Any]:
        return success_response({
            "donations": cls.donation_stats(),
            "inventory": cls.inventory_stats(),
            "waste": cls.waste_stats(),
            "donors": cls.donor_stats(),
            "recent_activities": cls.recent_activity(),
        })
