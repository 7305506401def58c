import uuid as uuid_lib

from django.core.validators import MaxValueValidator, MinValueValidator
from django.db import models
from django.db.models import Q
from django.utils import timezone


class Donor(models.Model):
    class DonorType(models.TextChoices):
        INDIVIDUAL = "INDIVIDUAL", "Individual"
        BUSINESS = "BUSINESS", "Business"
        ORGANIZATION = "ORGANIZATION", "Organization"

    uuid = models.UUIDField(default=uuid_lib.uuid4, unique=True, editable=False)
    name = models.CharField(max_length=255)
    donor_type = models.CharField(max_length=50, choices=DonorType.choices)
    email = models.EmailField(max_length=255, blank=True, default="")
    phone_number = models.CharField(max_length=20, blank=True, default="")
    address = models.CharField(max_length=500, blank=True, default="")
    city = models.CharField(max_length=100, blank=True, default="")
    postal_code = models.CharField(max_length=10, blank=True, default="")
    is_active = models.BooleanField(default=True)
    created_at = models.DateTimeField(auto_now_add=True)
    updated_at = models.DateTimeField(auto_now=True)

    class Meta:
        ordering = ["name"]

    def __str__(self):
        return self.name


class Product(models.Model):
    class StorageCondition(models.TextChoices):
        ROOM_TEMP = "ROOM_TEMP", "Room Temp"
        REFRIGERATED = "REFRIGERATED", "Refrigerated"
        FROZEN = "FROZEN", "Frozen"

    uuid = models.UUIDField(default=uuid_lib.uuid4, unique=True, editable=False)
    product_code = models.CharField(max_length=50, unique=True)
    product_name = models.CharField(max_length=255)
    category = models.CharField(max_length=100, blank=True, default="", db_index=True)
    default_unit_type = models.CharField(max_length=50, blank=True, default="")
    is_perishable = models.BooleanField(default=False)
    optimal_storage_condition = models.CharField(
        max_length=100, choices=StorageCondition.choices, blank=True, default=""
    )
    is_active = models.BooleanField(default=True)
    created_at = models.DateTimeField(auto_now_add=True)
    updated_at = models.DateTimeField(auto_now=True)

    class Meta:
        ordering = ["product_name"]

    def __str__(self):
        return f"{self.product_name} ({self.product_code})"


class Donation(models.Model):
    class Status(models.TextChoices):
        PENDING = "PENDING", "Pending"
        INSPECTION = "INSPECTION", "Inspection"
        APPROVED = "APPROVED", "Approved"
        REJECTED = "REJECTED", "Rejected"
        ARCHIVED = "ARCHIVED", "Archived"

    uuid = models.UUIDField(default=uuid_lib.uuid4, unique=True, editable=False)
    donor = models.ForeignKey(
        Donor, on_delete=models.PROTECT, related_name="donations"
    )
    donation_date = models.DateTimeField(db_index=True)
    receipt_number = models.CharField(max_length=50, unique=True)
    status = models.CharField(
        max_length=20, choices=Status.choices, default=Status.PENDING, db_index=True
    )
    received_by = models.PositiveIntegerField()
    inspected_by = models.PositiveIntegerField(null=True, blank=True)
    notes = models.TextField(blank=True, default="")
    created_at = models.DateTimeField(auto_now_add=True)
    updated_at = models.DateTimeField(auto_now=True)

    class Meta:
        ordering = ["-donation_date"]

    def __str__(self):
        return f"{self.receipt_number} ({self.get_status_display()})"


class DonationItem(models.Model):
    uuid = models.UUIDField(default=uuid_lib.uuid4, unique=True, editable=False)
    donation = models.ForeignKey(
        Donation, on_delete=models.CASCADE, related_name="items"
    )
    product = models.ForeignKey(
        Product, on_delete=models.PROTECT, related_name="donation_items"
    )
    quantity_received = models.PositiveIntegerField(validators=[MinValueValidator(1)])
    unit_type = models.CharField(max_length=50)
    expiration_date = models.DateField(null=True, blank=True)
    manufacture_date = models.DateField(null=True, blank=True)
    batch_number = models.CharField(max_length=100, blank=True, default="")
    storage_condition = models.CharField(
        max_length=100, choices=Product.StorageCondition.choices, blank=True, default=""
    )
    notes = models.TextField(blank=True, default="")
    created_at = models.DateTimeField(auto_now_add=True)

    class Meta:
        ordering = ["id"]

    def __str__(self):
        return f"{self.product.product_name} x {self.quantity_received} {self.unit_type}"


class QualityInspection(models.Model):
    class Result(models.TextChoices):
        APPROVED = "APPROVED", "Approved"
        REJECTED = "REJECTED", "Rejected"
        CONDITIONAL = "CONDITIONAL", "Conditional"

    uuid = models.UUIDField(default=uuid_lib.uuid4, unique=True, editable=False)
    donation_item = models.OneToOneField(
        DonationItem, on_delete=models.CASCADE, related_name="inspection"
    )
    inspection_date = models.DateTimeField(default=timezone.now)
    inspected_by = models.PositiveIntegerField()
    result = models.CharField(max_length=20, choices=Result.choices)
    quality_rating = models.PositiveSmallIntegerField(
        null=True,
        blank=True,
        validators=[MinValueValidator(1), MaxValueValidator(5)],
    )

    # Physical condition
    packaging_integrity = models.CharField(max_length=50, blank=True, default="")
    product_appearance = models.CharField(max_length=50, blank=True, default="")
    temperature_check = models.DecimalField(
        max_digits=6, decimal_places=2, null=True, blank=True
    )

    # Compliance
    has_expired_items = models.BooleanField(default=False)
    has_allergen_info = models.BooleanField(default=False)
    has_nutrition_label = models.BooleanField(default=False)
    is_from_approved_source = models.BooleanField(default=False)

    notes = models.TextField(blank=True, default="")
    decision_reason = models.TextField(blank=True, default="")
    created_at = models.DateTimeField(auto_now_add=True)

    def __str__(self):
        return f"Inspection of item {self.donation_item_id}: {self.result}"


class DonationDisposition(models.Model):
    class DispositionType(models.TextChoices):
        APPROVED_TO_INVENTORY = "APPROVED_TO_INVENTORY", "Approved to Inventory"
        REJECTED_TO_WASTE = "REJECTED_TO_WASTE", "Rejected to Waste"
        PARTIAL = "PARTIAL", "Partially Approved"

    uuid = models.UUIDField(default=uuid_lib.uuid4, unique=True, editable=False)
    donation_item = models.OneToOneField(
        DonationItem, on_delete=models.CASCADE, related_name="disposition"
    )
    disposition_type = models.CharField(max_length=50, choices=DispositionType.choices)
    reason = models.TextField(blank=True, default="")
    quantity_approved = models.PositiveIntegerField(default=0)
    quantity_rejected = models.PositiveIntegerField(default=0)
    approved_at = models.DateTimeField(default=timezone.now)
    approved_by = models.PositiveIntegerField()
    # set once stock and waste have been materialized from the split
    is_reconciled = models.BooleanField(default=False)
    created_at = models.DateTimeField(auto_now_add=True)
    updated_at = models.DateTimeField(auto_now=True)

    def __str__(self):
        return f"{self.get_disposition_type_display()} ({self.quantity_approved}/{self.quantity_rejected})"

    def save(self, *args, **kwargs):
        if not self._state.adding and type(self).objects.filter(pk=self.pk, is_reconciled=True).exists():
            from donations.services.base_service import BusinessRuleError
            raise BusinessRuleError(
                "Disposition is immutable once stock or waste has been recorded",
                "disposition_immutable",
            )
        super().save(*args, **kwargs)


class InventoryItem(models.Model):
    uuid = models.UUIDField(default=uuid_lib.uuid4, unique=True, editable=False)
    source_donation_item = models.ForeignKey(
        DonationItem, on_delete=models.PROTECT, related_name="inventory_items"
    )
    storage_location_id = models.PositiveIntegerField(null=True, blank=True)
    quantity_on_hand = models.PositiveIntegerField(default=0)
    expiration_date = models.DateField(null=True, blank=True, db_index=True)
    date_received = models.DateTimeField(default=timezone.now)
    is_blocked = models.BooleanField(default=False)
    block_reason = models.CharField(max_length=255, blank=True, default="")
    created_at = models.DateTimeField(auto_now_add=True)
    updated_at = models.DateTimeField(auto_now=True)

    class Meta:
        ordering = ["expiration_date", "id"]

    def __str__(self):
        return f"{self.product.product_name}: {self.quantity_on_hand}"

    @property
    def product(self) -> Product:
        return self.source_donation_item.product


class WasteRecord(models.Model):
    uuid = models.UUIDField(default=uuid_lib.uuid4, unique=True, editable=False)
    donation_item = models.ForeignKey(
        DonationItem,
        on_delete=models.SET_NULL,
        null=True,
        blank=True,
        related_name="waste_records",
    )
    product = models.ForeignKey(
        Product, on_delete=models.PROTECT, related_name="waste_records"
    )
    quantity = models.PositiveIntegerField()
    unit_type = models.CharField(max_length=50, blank=True, default="")
    waste_reason = models.CharField(max_length=100)
    disposal_method = models.CharField(max_length=100, blank=True, default="")
    disposed_at = models.DateTimeField(null=True, blank=True)
    disposed_by = models.PositiveIntegerField(null=True, blank=True)
    created_at = models.DateTimeField(auto_now_add=True)

    class Meta:
        ordering = ["-created_at"]

    def __str__(self):
        return f"{self.product.product_name} x {self.quantity} ({self.waste_reason})"


class DonationReceipt(models.Model):
    uuid = models.UUIDField(default=uuid_lib.uuid4, unique=True, editable=False)
    donation = models.ForeignKey(
        Donation, on_delete=models.CASCADE, related_name="receipts"
    )
    receipt_number = models.CharField(max_length=50)
    revision = models.PositiveIntegerField(default=1)
    total_items_received = models.PositiveIntegerField()
    total_items_approved = models.PositiveIntegerField()
    generated_at = models.DateTimeField(default=timezone.now)
    issued_by = models.PositiveIntegerField()
    is_current = models.BooleanField(default=True)
    superseded_at = models.DateTimeField(null=True, blank=True)
    sent_to_donor = models.BooleanField(default=False)
    sent_at = models.DateTimeField(null=True, blank=True)

    class Meta:
        ordering = ["donation", "-revision"]
        constraints = [
            models.UniqueConstraint(
                fields=["donation", "revision"],
                name="unique_receipt_revision",
            ),
            models.UniqueConstraint(
                fields=["donation"],
                condition=Q(is_current=True),
                name="unique_current_receipt_per_donation",
            ),
        ]

    def __str__(self):
        return f"{self.receipt_number} r{self.revision}"


class AuditTrailQuerySet(models.QuerySet):
    def update(self, **kwargs):
        from donations.services.base_service import BusinessRuleError
        raise BusinessRuleError("Audit trail entries are append-only", "audit_append_only")

    def delete(self):
        from donations.services.base_service import BusinessRuleError
        raise BusinessRuleError("Audit trail entries are append-only", "audit_append_only")


class DonationAuditTrail(models.Model):
    class Action(models.TextChoices):
        CREATED = "CREATED", "Created"
        UPDATED = "UPDATED", "Updated"
        STATUS_CHANGED = "STATUS_CHANGED", "Status Changed"
        ITEM_ADDED = "ITEM_ADDED", "Item Added"
        INSPECTION_RECORDED = "INSPECTION_RECORDED", "Inspection Recorded"
        DISPOSITION_RECORDED = "DISPOSITION_RECORDED", "Disposition Recorded"
        RECEIPT_ISSUED = "RECEIPT_ISSUED", "Receipt Issued"
        RECEIPT_REISSUED = "RECEIPT_REISSUED", "Receipt Reissued"
        RECEIPT_SENT = "RECEIPT_SENT", "Receipt Sent"

    uuid = models.UUIDField(default=uuid_lib.uuid4, unique=True, editable=False)
    donation = models.ForeignKey(
        Donation, on_delete=models.CASCADE, related_name="audit_trail"
    )
    action = models.CharField(max_length=100, choices=Action.choices, db_index=True)
    action_by = models.PositiveIntegerField()
    action_date = models.DateTimeField(default=timezone.now, db_index=True)
    old_status = models.CharField(
        max_length=20, choices=Donation.Status.choices, blank=True, default=""
    )
    new_status = models.CharField(
        max_length=20, choices=Donation.Status.choices, blank=True, default=""
    )
    details = models.TextField(blank=True, default="")

    objects = AuditTrailQuerySet.as_manager()

    class Meta:
        verbose_name_plural = "donation audit trail"
        ordering = ["action_date", "id"]

    def __str__(self):
        return f"{self.get_action_display()} on donation {self.donation_id}"

    def save(self, *args, **kwargs):
        if not self._state.adding:
            from donations.services.base_service import BusinessRuleError
            raise BusinessRuleError("Audit trail entries are append-only", "audit_append_only")
        super().save(*args, **kwargs)

    def delete(self, *args, **kwargs):
        from donations.services.base_service import BusinessRuleError
        raise BusinessRuleError("Audit trail entries are append-only", "audit_append_only")
