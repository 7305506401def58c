from django.urls import path
from . import views

app_name = "donations"

urlpatterns = [
    path("donations/", views.DonationListView.as_view(), name="donation-list"),
    path("donations/available-items/", views.AvailableItemsView.as_view(), name="donation-available-items"),
    path("donations/<int:donation_id>/", views.DonationDetailView.as_view(), name="donation-detail"),
    path("donations/<int:donation_id>/status/", views.DonationStatusView.as_view(), name="donation-status"),
    path("donations/<int:donation_id>/items/", views.DonationItemsView.as_view(), name="donation-items"),
    path("donations/<int:donation_id>/inspections/", views.DonationInspectionsView.as_view(), name="donation-inspections"),
    path("donations/<int:donation_id>/audit/", views.DonationAuditView.as_view(), name="donation-audit"),
    path("donations/<int:donation_id>/receipt/", views.DonationReceiptView.as_view(), name="donation-receipt"),
    path("donations/<int:donation_id>/receipt/reissue/", views.DonationReceiptReissueView.as_view(), name="donation-receipt-reissue"),
    path("donations/<int:donation_id>/receipt/sent/", views.DonationReceiptSentView.as_view(), name="donation-receipt-sent"),

    path("donation-items/<int:item_id>/inspection/", views.ItemInspectionView.as_view(), name="item-inspection"),
    path("donation-items/<int:item_id>/disposition/", views.ItemDispositionView.as_view(), name="item-disposition"),

    path("donors/", views.DonorListView.as_view(), name="donor-list"),
    path("donors/active/", views.DonorActiveView.as_view(), name="donor-active"),
    path("donors/<int:donor_id>/", views.DonorDetailView.as_view(), name="donor-detail"),

    path("products/", views.ProductListView.as_view(), name="product-list"),
    path("products/active/", views.ProductActiveView.as_view(), name="product-active"),
    path("products/<int:product_id>/", views.ProductDetailView.as_view(), name="product-detail"),

    path("inventory/", views.InventoryListView.as_view(), name="inventory-list"),
    path("inventory/expiring-soon/", views.InventoryExpiringView.as_view(), name="inventory-expiring"),
    path("inventory/<int:item_id>/", views.InventoryDetailView.as_view(), name="inventory-detail"),
    path("inventory/<int:item_id>/adjust/", views.InventoryAdjustView.as_view(), name="inventory-adjust"),
    path("inventory/<int:item_id>/block/", views.InventoryBlockView.as_view(), name="inventory-block"),
    path("inventory/<int:item_id>/unblock/", views.InventoryUnblockView.as_view(), name="inventory-unblock"),

    path("waste/", views.WasteListView.as_view(), name="waste-list"),
    path("waste/<int:record_id>/", views.WasteDetailView.as_view(), name="waste-detail"),

    path("dashboard/", views.DashboardView.as_view(), name="dashboard"),
]
