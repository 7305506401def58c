import json
import logging

from django.http import JsonResponse
from django.views import View
from django.views.decorators.csrf import csrf_exempt
from django.utils.decorators import method_decorator

from donations.services.base_service import to_int
from donations.services import (
    ServiceError, ValidationError, NotFoundError, ConflictError,
    InvalidTransitionError, BusinessRuleError,
    DonorService, ProductService,
    DonationService, QualityInspectionService, DispositionService, DonationReceiptService,
    InventoryService, WasteService, DashboardService,
)

logger = logging.getLogger(__name__)

ERROR_STATUS = {
    ValidationError: 400,
    NotFoundError: 404,
    ConflictError: 409,
    InvalidTransitionError: 409,
    BusinessRuleError: 400,
}


def error_response(message: str, code: str = "server_error", status: int = 400, details: dict = None):
    data = {"success": False, "error": {"code": code, "message": message, "details": details or {}}}
    return JsonResponse(data, status=status)


def handle_service_error(e: Exception):
    if isinstance(e, ServiceError):
        details = dict(e.details)
        if isinstance(e, ValidationError) and e.field:
            details["field"] = e.field
        status = next((s for cls, s in ERROR_STATUS.items() if isinstance(e, cls)), 400)
        return error_response(e.message, e.code, status, details)

    logger.exception(f"Unhandled error: {e}")
    return error_response("Internal server error", "server_error", 500)


def bool_param(value):
    if value is None or value == "":
        return None
    return str(value).lower() in ("1", "true", "yes")


class BaseDonationView(View):
    @method_decorator(csrf_exempt)
    def dispatch(self, request, *args, **kwargs):
        return super().dispatch(request, *args, **kwargs)

    def get_json_body(self, request):
        try:
            return json.loads(request.body) if request.body else {}
        except json.JSONDecodeError:
            return {}

    def get_actor(self, request, data: dict, field: str):
        """Authenticated user id, otherwise the explicit `*_by` field of the body."""
        if request.user.is_authenticated:
            return request.user.id
        return data.get(field)

    def list_params(self, request) -> dict:
        return {
            "page": request.GET.get("page", 1),
            "per_page": request.GET.get("page_size") or request.GET.get("per_page"),
            "search": request.GET.get("search"),
            "sort_by": request.GET.get("sort_by"),
            "sort_descending": bool_param(request.GET.get("sort_descending")),
        }

    def success(self, data: dict, status: int = 200):
        return JsonResponse({"success": True, **data}, status=status)


# ==================== DONATIONS ====================

class DonationListView(BaseDonationView):

    def get(self, request):
        try:
            donor_id = request.GET.get("donor_id")
            result = DonationService.list(
                donor_id=to_int(donor_id, "donor_id", required=False),
                status=request.GET.get("status"),
                start_date=request.GET.get("start_date"),
                end_date=request.GET.get("end_date"),
                **self.list_params(request)
            )
            return self.success(result)
        except Exception as e:
            return handle_service_error(e)

    def post(self, request):
        try:
            data = self.get_json_body(request)
            result = DonationService.create(
                donor_id=data.get("donor_id"),
                received_by=self.get_actor(request, data, "received_by"),
                items=data.get("items") or [],
                receipt_number=data.get("receipt_number"),
                donation_date=data.get("donation_date"),
                notes=data.get("notes", ""),
            )
            return self.success(result, 201)
        except Exception as e:
            return handle_service_error(e)


class DonationDetailView(BaseDonationView):

    def get(self, request, donation_id):
        try:
            return self.success(DonationService.get(donation_id))
        except Exception as e:
            return handle_service_error(e)

    def put(self, request, donation_id):
        try:
            data = self.get_json_body(request)
            result = DonationService.update(
                donation_id,
                updated_by=self.get_actor(request, data, "updated_by"),
                notes=data.get("notes"),
                donation_date=data.get("donation_date"),
                inspected_by=data.get("inspected_by"),
            )
            return self.success(result)
        except Exception as e:
            return handle_service_error(e)

    def delete(self, request, donation_id):
        try:
            return self.success(DonationService.delete(donation_id))
        except Exception as e:
            return handle_service_error(e)


class DonationStatusView(BaseDonationView):

    def post(self, request, donation_id):
        try:
            data = self.get_json_body(request)
            result = DonationService.update_status(
                donation_id,
                new_status=data.get("status"),
                changed_by=self.get_actor(request, data, "changed_by"),
                inspected_by=data.get("inspected_by"),
                notes=data.get("notes"),
            )
            return self.success(result)
        except Exception as e:
            return handle_service_error(e)


class DonationItemsView(BaseDonationView):

    def get(self, request, donation_id):
        try:
            return self.success(DonationService.get_items(donation_id))
        except Exception as e:
            return handle_service_error(e)

    def post(self, request, donation_id):
        try:
            data = self.get_json_body(request)
            result = DonationService.add_item(
                donation_id,
                item=data,
                added_by=self.get_actor(request, data, "added_by"),
            )
            return self.success(result, 201)
        except Exception as e:
            return handle_service_error(e)


class DonationInspectionsView(BaseDonationView):

    def get(self, request, donation_id):
        try:
            return self.success(DonationService.get_inspections(donation_id))
        except Exception as e:
            return handle_service_error(e)


class DonationAuditView(BaseDonationView):

    def get(self, request, donation_id):
        try:
            return self.success(DonationService.get_audit_trail(donation_id))
        except Exception as e:
            return handle_service_error(e)


class DonationReceiptView(BaseDonationView):

    def get(self, request, donation_id):
        try:
            return self.success(DonationReceiptService.get_current(donation_id))
        except Exception as e:
            return handle_service_error(e)

    def post(self, request, donation_id):
        try:
            data = self.get_json_body(request)
            result = DonationReceiptService.generate(
                donation_id,
                issued_by=self.get_actor(request, data, "issued_by"),
            )
            return self.success(result, 201)
        except Exception as e:
            return handle_service_error(e)


class DonationReceiptReissueView(BaseDonationView):

    def post(self, request, donation_id):
        try:
            data = self.get_json_body(request)
            result = DonationReceiptService.reissue(
                donation_id,
                issued_by=self.get_actor(request, data, "issued_by"),
                reason=data.get("reason", ""),
            )
            return self.success(result, 201)
        except Exception as e:
            return handle_service_error(e)


class DonationReceiptSentView(BaseDonationView):

    def post(self, request, donation_id):
        try:
            data = self.get_json_body(request)
            result = DonationReceiptService.mark_sent(
                donation_id,
                sent_by=self.get_actor(request, data, "sent_by"),
            )
            return self.success(result)
        except Exception as e:
            return handle_service_error(e)


class AvailableItemsView(BaseDonationView):

    def get(self, request):
        try:
            return self.success(DonationService.get_available_items())
        except Exception as e:
            return handle_service_error(e)


# ==================== DONATION ITEMS ====================

class ItemInspectionView(BaseDonationView):

    def post(self, request, item_id):
        try:
            data = self.get_json_body(request)
            checks = {
                k: v for k, v in data.items()
                if k in QualityInspectionService.TEXT_CHECKS
                or k in QualityInspectionService.FLAG_CHECKS
                or k == "temperature_check"
            }
            result = QualityInspectionService.record(
                item_id,
                inspected_by=self.get_actor(request, data, "inspected_by"),
                result=data.get("result"),
                rating=data.get("rating"),
                notes=data.get("notes", ""),
                rejection_reason=data.get("rejection_reason", ""),
                **checks
            )
            return self.success(result, 201)
        except Exception as e:
            return handle_service_error(e)


class ItemDispositionView(BaseDonationView):

    def post(self, request, item_id):
        try:
            data = self.get_json_body(request)
            result = DispositionService.record(
                item_id,
                disposition_type=data.get("disposition_type"),
                approved_by=self.get_actor(request, data, "approved_by"),
                quantity_approved=data.get("quantity_approved"),
                quantity_rejected=data.get("quantity_rejected"),
                reason=data.get("reason", ""),
                storage_location_id=data.get("storage_location_id"),
            )
            return self.success(result, 201)
        except Exception as e:
            return handle_service_error(e)


# ==================== DONORS ====================

class DonorListView(BaseDonationView):

    def get(self, request):
        try:
            result = DonorService.list(
                donor_type=request.GET.get("donor_type"),
                is_active=bool_param(request.GET.get("is_active")),
                **self.list_params(request)
            )
            return self.success(result)
        except Exception as e:
            return handle_service_error(e)

    def post(self, request):
        try:
            data = self.get_json_body(request)
            result = DonorService.create(
                name=data.get("name"),
                donor_type=data.get("donor_type"),
                **{k: data[k] for k in ("email", "phone_number", "address", "city", "postal_code") if k in data}
            )
            return self.success(result, 201)
        except Exception as e:
            return handle_service_error(e)


class DonorDetailView(BaseDonationView):

    def get(self, request, donor_id):
        try:
            return self.success(DonorService.get(donor_id))
        except Exception as e:
            return handle_service_error(e)

    def put(self, request, donor_id):
        try:
            data = self.get_json_body(request)
            return self.success(DonorService.update(donor_id, **data))
        except Exception as e:
            return handle_service_error(e)

    def delete(self, request, donor_id):
        try:
            return self.success(DonorService.deactivate(donor_id))
        except Exception as e:
            return handle_service_error(e)


class DonorActiveView(BaseDonationView):

    def get(self, request):
        try:
            return self.success(DonorService.get_active())
        except Exception as e:
            return handle_service_error(e)


# ==================== PRODUCTS ====================

class ProductListView(BaseDonationView):

    def get(self, request):
        try:
            result = ProductService.list(
                category=request.GET.get("category"),
                is_perishable=bool_param(request.GET.get("is_perishable")),
                is_active=bool_param(request.GET.get("is_active")),
                **self.list_params(request)
            )
            return self.success(result)
        except Exception as e:
            return handle_service_error(e)

    def post(self, request):
        try:
            data = self.get_json_body(request)
            result = ProductService.create(
                product_code=data.get("product_code"),
                product_name=data.get("product_name"),
                category=data.get("category", ""),
                default_unit_type=data.get("default_unit_type", ""),
                is_perishable=data.get("is_perishable", False),
                optimal_storage_condition=data.get("optimal_storage_condition", ""),
            )
            return self.success(result, 201)
        except Exception as e:
            return handle_service_error(e)


class ProductDetailView(BaseDonationView):

    def get(self, request, product_id):
        try:
            return self.success(ProductService.get(product_id))
        except Exception as e:
            return handle_service_error(e)

    def put(self, request, product_id):
        try:
            data = self.get_json_body(request)
            return self.success(ProductService.update(product_id, **data))
        except Exception as e:
            return handle_service_error(e)

    def delete(self, request, product_id):
        try:
            return self.success(ProductService.deactivate(product_id))
        except Exception as e:
            return handle_service_error(e)


class ProductActiveView(BaseDonationView):

    def get(self, request):
        try:
            return self.success(ProductService.get_active())
        except Exception as e:
            return handle_service_error(e)


# ==================== INVENTORY ====================

class InventoryListView(BaseDonationView):

    def get(self, request):
        try:
            product_id = request.GET.get("product_id")
            result = InventoryService.list(
                product_id=to_int(product_id, "product_id", required=False),
                category=request.GET.get("category"),
                expiring_soon=bool_param(request.GET.get("expiring_soon")) or False,
                expired=bool_param(request.GET.get("expired")) or False,
                blocked=bool_param(request.GET.get("blocked")),
                **self.list_params(request)
            )
            return self.success(result)
        except Exception as e:
            return handle_service_error(e)

    def post(self, request):
        try:
            data = self.get_json_body(request)
            result = InventoryService.create(
                source_donation_item_id=data.get("source_donation_item_id"),
                quantity_on_hand=data.get("quantity_on_hand"),
                storage_location_id=data.get("storage_location_id"),
                expiration_date=data.get("expiration_date"),
                date_received=data.get("date_received"),
            )
            return self.success(result, 201)
        except Exception as e:
            return handle_service_error(e)


class InventoryDetailView(BaseDonationView):

    def get(self, request, item_id):
        try:
            return self.success(InventoryService.get(item_id))
        except Exception as e:
            return handle_service_error(e)

    def put(self, request, item_id):
        try:
            data = self.get_json_body(request)
            return self.success(InventoryService.update(item_id, **data))
        except Exception as e:
            return handle_service_error(e)

    def delete(self, request, item_id):
        try:
            return self.success(InventoryService.delete(item_id))
        except Exception as e:
            return handle_service_error(e)


class InventoryExpiringView(BaseDonationView):

    def get(self, request):
        try:
            return self.success(InventoryService.expiring_soon(request.GET.get("days")))
        except Exception as e:
            return handle_service_error(e)


class InventoryAdjustView(BaseDonationView):

    def post(self, request, item_id):
        try:
            data = self.get_json_body(request)
            result = InventoryService.adjust_quantity(
                item_id,
                delta=data.get("quantity_change"),
                reason=data.get("reason", ""),
            )
            return self.success(result)
        except Exception as e:
            return handle_service_error(e)


class InventoryBlockView(BaseDonationView):

    def post(self, request, item_id):
        try:
            data = self.get_json_body(request)
            return self.success(InventoryService.block(item_id, data.get("reason", "")))
        except Exception as e:
            return handle_service_error(e)


class InventoryUnblockView(BaseDonationView):

    def post(self, request, item_id):
        try:
            return self.success(InventoryService.unblock(item_id))
        except Exception as e:
            return handle_service_error(e)


# ==================== WASTE ====================

class WasteListView(BaseDonationView):

    def get(self, request):
        try:
            product_id = request.GET.get("product_id")
            result = WasteService.list(
                product_id=to_int(product_id, "product_id", required=False),
                category=request.GET.get("category"),
                waste_reason=request.GET.get("waste_reason"),
                start_date=request.GET.get("start_date"),
                end_date=request.GET.get("end_date"),
                **self.list_params(request)
            )
            return self.success(result)
        except Exception as e:
            return handle_service_error(e)

    def post(self, request):
        try:
            data = self.get_json_body(request)
            result = WasteService.create(
                product_id=data.get("product_id"),
                quantity=data.get("quantity"),
                waste_reason=data.get("waste_reason"),
                donation_item_id=data.get("donation_item_id"),
                unit_type=data.get("unit_type", ""),
                disposal_method=data.get("disposal_method", ""),
                disposed_at=data.get("disposed_at"),
                disposed_by=self.get_actor(request, data, "disposed_by"),
            )
            return self.success(result, 201)
        except Exception as e:
            return handle_service_error(e)


class WasteDetailView(BaseDonationView):

    def get(self, request, record_id):
        try:
            return self.success(WasteService.get(record_id))
        except Exception as e:
            return handle_service_error(e)

    def put(self, request, record_id):
        try:
            data = self.get_json_body(request)
            return self.success(WasteService.update(record_id, **data))
        except Exception as e:
            return handle_service_error(e)

    def delete(self, request, record_id):
        try:
            return self.success(WasteService.delete(record_id))
        except Exception as e:
            return handle_service_error(e)


# ==================== DASHBOARD ====================

class DashboardView(BaseDonationView):

    def get(self, request):
        try:
            return self.success(DashboardService.get_statistics())
        except Exception as e:
            return handle_service_error(e)
