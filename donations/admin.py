from django.contrib import admin
from django.urls import reverse
from django.utils.html import format_html
from django.utils.translation import gettext_lazy as _
from unfold.admin import ModelAdmin, TabularInline
from unfold.decorators import display
from unfold.contrib.filters.admin import (
    RangeDateFilter,
    RangeDateTimeFilter,
    RangeNumericFilter,
)
from .models import (
    Donor, Product, Donation, DonationItem, QualityInspection, DonationDisposition,
    InventoryItem, WasteRecord, DonationReceipt, DonationAuditTrail,
)


STATUS_COLORS = {
    Donation.Status.PENDING: 'warning',
    Donation.Status.INSPECTION: 'info',
    Donation.Status.APPROVED: 'success',
    Donation.Status.REJECTED: 'danger',
    Donation.Status.ARCHIVED: 'info',
}


class DonationItemInline(TabularInline):
    model = DonationItem
    extra = 0
    fields = ('product', 'quantity_received', 'unit_type', 'expiration_date', 'batch_number')


class ReadOnlyModelAdmin(ModelAdmin):
    def has_add_permission(self, request):
        return False

    def has_change_permission(self, request, obj=None):
        return False

    def has_delete_permission(self, request, obj=None):
        return False


@admin.register(Donor)
class DonorAdmin(ModelAdmin):
    list_display = ['id', 'name', 'donor_type', 'email', 'city', 'active_badge', 'donation_count', 'created_at']
    list_filter = [
        'donor_type',
        'is_active',
        ('created_at', RangeDateFilter),
    ]
    search_fields = ['name', 'email', 'phone_number', 'address']
    list_filter_submit = True

    fieldsets = (
        (_('Donor'), {
            'fields': ('name', 'donor_type', 'is_active')
        }),
        (_('Contact'), {
            'fields': ('email', 'phone_number', 'address', 'city', 'postal_code')
        }),
    )

    @display(description=_("Active"), label=True)
    def active_badge(self, obj):
        if obj.is_active:
            return 'success', _("Active")
        return 'danger', _("Inactive")

    @display(description=_("Donations"))
    def donation_count(self, obj):
        return obj.donations.count()


@admin.register(Product)
class ProductAdmin(ModelAdmin):
    list_display = ['id', 'product_code', 'product_name', 'category', 'is_perishable',
                    'optimal_storage_condition', 'is_active']
    list_filter = ['category', 'is_perishable', 'optimal_storage_condition', 'is_active']
    search_fields = ['product_code', 'product_name', 'category']
    list_filter_submit = True


@admin.register(Donation)
class DonationAdmin(ModelAdmin):
    list_display = ['receipt_number', 'donor_link', 'status_badge', 'donation_date', 'received_by', 'items_count']
    list_filter = [
        'status',
        ('donation_date', RangeDateTimeFilter),
    ]
    search_fields = ['receipt_number', 'donor__name', 'notes']
    list_filter_submit = True
    list_fullwidth = True
    readonly_fields = ['status', 'created_at', 'updated_at']
    inlines = [DonationItemInline]

    @display(description=_("Donor"))
    def donor_link(self, obj):
        url = reverse('admin:donations_donor_change', args=[obj.donor_id])
        return format_html('<a href="{}">{}</a>', url, obj.donor.name)

    @display(description=_("Status"), label=True)
    def status_badge(self, obj):
        return STATUS_COLORS.get(obj.status, 'info'), obj.get_status_display()

    @display(description=_("Items"))
    def items_count(self, obj):
        return obj.items.count()


@admin.register(QualityInspection)
class QualityInspectionAdmin(ModelAdmin):
    list_display = ['id', 'donation_item', 'result', 'quality_rating', 'inspected_by', 'inspection_date']
    list_filter = [
        'result',
        ('inspection_date', RangeDateTimeFilter),
    ]
    search_fields = ['donation_item__product__product_name', 'decision_reason']
    list_filter_submit = True


@admin.register(DonationDisposition)
class DonationDispositionAdmin(ModelAdmin):
    list_display = ['id', 'donation_item', 'disposition_type', 'quantity_approved', 'quantity_rejected', 'is_reconciled', 'approved_at']
    list_filter = ['disposition_type', 'is_reconciled']
    search_fields = ['donation_item__product__product_name', 'reason']


@admin.register(InventoryItem)
class InventoryItemAdmin(ModelAdmin):
    list_display = ['id', 'product_name', 'quantity_on_hand', 'expiration_date', 'blocked_badge', 'date_received']
    list_filter = [
        'is_blocked',
        ('expiration_date', RangeDateFilter),
        ('quantity_on_hand', RangeNumericFilter),
    ]
    search_fields = ['source_donation_item__product__product_name', 'block_reason']
    list_filter_submit = True

    @display(description=_("Product"), ordering='source_donation_item__product__product_name')
    def product_name(self, obj):
        return obj.product.product_name

    @display(description=_("Blocked"), label=True)
    def blocked_badge(self, obj):
        if obj.is_blocked:
            return 'danger', obj.block_reason or _("Blocked")
        return 'success', _("Available")


@admin.register(WasteRecord)
class WasteRecordAdmin(ModelAdmin):
    list_display = ['id', 'product', 'quantity', 'unit_type', 'waste_reason', 'disposed_at']
    list_filter = [
        'waste_reason',
        ('created_at', RangeDateFilter),
    ]
    search_fields = ['product__product_name', 'waste_reason', 'disposal_method']
    list_filter_submit = True


@admin.register(DonationReceipt)
class DonationReceiptAdmin(ReadOnlyModelAdmin):
    list_display = ['receipt_number', 'revision', 'total_items_received', 'total_items_approved',
                    'is_current', 'sent_to_donor', 'generated_at']
    list_filter = ['is_current', 'sent_to_donor']
    search_fields = ['receipt_number']


@admin.register(DonationAuditTrail)
class DonationAuditTrailAdmin(ReadOnlyModelAdmin):
    list_display = ['id', 'donation', 'action', 'action_by', 'old_status', 'new_status', 'action_date']
    list_filter = [
        'action',
        ('action_date', RangeDateTimeFilter),
    ]
    search_fields = ['donation__receipt_number', 'details']
    list_filter_submit = True
