"""
Donation Services - intake, inspection, disposition and stock of donated goods

Usage:
    from donations.services import DonationService, DispositionService

    # Receive a donation
    result = DonationService.create(donor_id=1, received_by=7, items=[...])

    # Split an item into stock and waste
    DispositionService.record(item_id=3, disposition_type="PARTIAL", approved_by=7,
                              quantity_approved=7, quantity_rejected=2)
"""

# Base utilities
from donations.services.base_service import (
    ServiceError,
    ValidationError,
    NotFoundError,
    ConflictError,
    InvalidTransitionError,
    BusinessRuleError,
    success_response,
    generate_number,
    BaseService,
)
from .query_service import QuerySpec, Page, run_query

# Catalogue
from .donor_service import DonorService
from .product_service import ProductService

# Donation lifecycle
from .lifecycle import derive_donation_status, check_transition, check_manual_transition
from .audit_service import DonationAuditService
from .donation_service import DonationService
from .inspection_service import QualityInspectionService
from .disposition_service import DispositionService, DispositionSplit, reconcile_split
from .receipt_service import DonationReceiptService

# Stock
from .inventory_service import InventoryService
from .waste_service import WasteService

# Reporting
from .dashboard_service import DashboardService


__all__ = [
    # Base
    "ServiceError",
    "ValidationError",
    "NotFoundError",
    "ConflictError",
    "InvalidTransitionError",
    "BusinessRuleError",
    "success_response",
    "generate_number",
    "BaseService",
    "QuerySpec",
    "Page",
    "run_query",

    # Catalogue
    "DonorService",
    "ProductService",

    # Donation lifecycle
    "derive_donation_status",
    "check_transition",
    "check_manual_transition",
    "DonationAuditService",
    "DonationService",
    "QualityInspectionService",
    "DispositionService",
    "DispositionSplit",
    "reconcile_split",
    "DonationReceiptService",

    # Stock
    "InventoryService",
    "WasteService",

    # Reporting
    "DashboardService",
]
