"""
Django models for the VIP Smoke storefront back-office.

Models: Brand, Category, Product, ComplianceRule, ProductCompliance,
        ComplianceAuditLog, CartItem, Order, OrderItem, OrderStatusHistory,
        SyncRun, IntegrationError

Table names follow the hosted Supabase schema so the storefront and the
back-office read and write the same rows.
"""

import uuid
from decimal import Decimal

from django.conf import settings
from django.core.validators import MinValueValidator
from django.db import models
from django.utils import timezone
from django.utils.text import slugify


class ComplianceCategory(models.TextChoices):
    """Regulated product categories."""

    THCA = "THCA", "THCA"
    KRATOM = "Kratom", "Kratom"
    SEVEN_HYDROXY = "7-Hydroxy", "7-Hydroxy"
    NICOTINE = "Nicotine", "Nicotine"


class ViolationSeverity(models.TextChoices):
    LOW = "low", "Low"
    MEDIUM = "medium", "Medium"
    HIGH = "high", "High"
    CRITICAL = "critical", "Critical"


class ClassificationStatus(models.TextChoices):
    """
    Last state a product reached in the background classifier.

    queued -> rule_checked -> (hidden | ai_checked) -> (hidden | visible)
    """

    UNCLASSIFIED = "unclassified", "Unclassified"
    QUEUED = "queued", "Queued"
    RULE_CHECKED = "rule_checked", "Rule Checked"
    AI_CHECKED = "ai_checked", "AI Checked"
    HIDDEN = "hidden", "Hidden"
    VISIBLE = "visible", "Visible"
    FAILED = "failed", "Failed"


class OrderStatus(models.TextChoices):
    PENDING = "pending", "Pending"
    CONFIRMED = "confirmed", "Confirmed"
    PROCESSING = "processing", "Processing"
    SHIPPED = "shipped", "Shipped"
    DELIVERED = "delivered", "Delivered"
    CANCELLED = "cancelled", "Cancelled"
    REFUNDED = "refunded", "Refunded"


class PaymentStatus(models.TextChoices):
    PENDING = "pending", "Pending"
    PAID = "paid", "Paid"
    FAILED = "failed", "Failed"
    REFUNDED = "refunded", "Refunded"


class FulfillmentStatus(models.TextChoices):
    UNFULFILLED = "unfulfilled", "Unfulfilled"
    PARTIAL = "partial", "Partially Fulfilled"
    FULFILLED = "fulfilled", "Fulfilled"


class SyncSource(models.TextChoices):
    ZOHO = "zoho", "Zoho Inventory"
    AIRTABLE = "airtable", "Airtable"
    MATCHER = "matcher", "Product Matcher"
    CLASSIFIER = "classifier", "Background Classifier"


class SyncRunStatus(models.TextChoices):
    RUNNING = "running", "Running"
    COMPLETED = "completed", "Completed"
    FAILED = "failed", "Failed"


class TimestampedModel(models.Model):
    """Base model stamping ``updated_at`` on every save."""

    created_at = models.DateTimeField(default=timezone.now)
    updated_at = models.DateTimeField(default=timezone.now)

    class Meta:
        abstract = True

    def save(self, *args, **kwargs):
        self.updated_at = timezone.now()
        update_fields = kwargs.get("update_fields")
        if update_fields is not None and "updated_at" not in update_fields:
            kwargs["update_fields"] = list(update_fields) + ["updated_at"]
        super().save(*args, **kwargs)


class SluggedModel(TimestampedModel):
    """Base model generating a unique slug from ``name``."""

    id = models.UUIDField(primary_key=True, default=uuid.uuid4, editable=False)
    name = models.CharField(max_length=200)
    slug = models.SlugField(max_length=220, unique=True, blank=True)
    description = models.TextField(blank=True)

    class Meta:
        abstract = True

    def save(self, *args, **kwargs):
        if not self.slug:
            self.slug = self._unique_slug()
        super().save(*args, **kwargs)

    def _unique_slug(self) -> str:
        base = slugify(self.name)[:200] or uuid.uuid4().hex[:8]
        slug = base
        counter = 2
        while type(self).objects.filter(slug=slug).exclude(pk=self.pk).exists():
            slug = f"{base}-{counter}"
            counter += 1
        return slug

    def __str__(self):
        return self.name


class Brand(SluggedModel):
    """Product brand, imported from Zoho item brands or created by admins."""

    logo_url = models.URLField(max_length=1000, blank=True)
    website = models.URLField(max_length=500, blank=True)
    is_active = models.BooleanField(default=True)

    class Meta:
        db_table = "brands"
        ordering = ["name"]


class Category(SluggedModel):
    """Storefront category, imported from Zoho item categories."""

    parent = models.ForeignKey(
        "self",
        on_delete=models.SET_NULL,
        null=True,
        blank=True,
        related_name="children",
    )
    zoho_category_id = models.CharField(max_length=100, blank=True, db_index=True)
    is_active = models.BooleanField(default=True)
    sort_order = models.IntegerField(default=0)

    class Meta:
        db_table = "categories"
        ordering = ["sort_order", "name"]
        verbose_name_plural = "categories"


class Product(TimestampedModel):
    """
    Internal catalog record.

    Written by the Zoho sync (identity, price, stock), the content sync
    (images, descriptions) and the classifier (visibility flags).
    Products are deactivated through ``is_active`` rather than deleted.
    """

    id = models.UUIDField(primary_key=True, default=uuid.uuid4, editable=False)
    name = models.CharField(max_length=500)
    slug = models.SlugField(max_length=520, blank=True, db_index=True)
    sku = models.CharField(max_length=100, unique=True, help_text="Retailer SKU")
    description = models.TextField(blank=True)
    short_description = models.CharField(max_length=500, blank=True)

    # Pricing and stock
    price = models.DecimalField(
        max_digits=10,
        decimal_places=2,
        default=Decimal("0.00"),
        validators=[MinValueValidator(Decimal("0.00"))],
    )
    vip_price = models.DecimalField(max_digits=10, decimal_places=2, null=True, blank=True)
    compare_at_price = models.DecimalField(
        max_digits=10,
        decimal_places=2,
        null=True,
        blank=True,
        help_text="Original price, a product is on sale when this is above price",
    )
    stock_quantity = models.IntegerField(default=0)

    # Relationships
    brand = models.ForeignKey(
        Brand, on_delete=models.SET_NULL, null=True, blank=True, related_name="products"
    )
    category = models.ForeignKey(
        Category, on_delete=models.SET_NULL, null=True, blank=True, related_name="products"
    )
    manufacturer = models.CharField(max_length=200, blank=True)

    # Media
    image_url = models.URLField(max_length=1000, blank=True)
    image_urls = models.JSONField(default=list, blank=True)

    # Flags
    is_active = models.BooleanField(default=True)
    featured = models.BooleanField(default=False)
    vip_exclusive = models.BooleanField(default=False)
    requires_membership = models.BooleanField(default=False)
    nicotine_product = models.BooleanField(default=False)
    tobacco_product = models.BooleanField(default=False)
    requires_lab_test = models.BooleanField(default=False)
    age_restriction = models.IntegerField(null=True, blank=True, help_text="Minimum buyer age")

    # Visibility (written by the classifier)
    visible_on_main_site = models.BooleanField(default=True)
    hidden_reason = models.CharField(max_length=500, blank=True)
    classification_status = models.CharField(
        max_length=20,
        choices=ClassificationStatus.choices,
        default=ClassificationStatus.UNCLASSIFIED,
    )
    last_classified_at = models.DateTimeField(null=True, blank=True)

    # Compliance documents
    lab_test_url = models.URLField(max_length=1000, blank=True)
    batch_number = models.CharField(max_length=100, blank=True)
    expiration_date = models.DateField(null=True, blank=True)
    warning_labels = models.JSONField(default=list, blank=True)

    # Free-form catalog data
    attributes = models.JSONField(default=dict, blank=True)
    specs = models.JSONField(default=dict, blank=True)
    tags = models.JSONField(default=list, blank=True)
    materials = models.JSONField(default=list, blank=True)

    # External references
    zoho_item_id = models.CharField(max_length=100, blank=True, db_index=True)
    external_record_id = models.CharField(
        max_length=100,
        blank=True,
        help_text="Airtable record id the content was copied from",
    )

    class Meta:
        db_table = "products"
        ordering = ["-featured", "-created_at"]
        indexes = [
            models.Index(fields=["is_active", "visible_on_main_site"], name="products_active_visible_idx"),
            models.Index(fields=["classification_status"], name="products_class_status_idx"),
            models.Index(fields=["vip_exclusive", "is_active"], name="products_vip_active_idx"),
        ]

    def save(self, *args, **kwargs):
        if not self.slug:
            self.slug = slugify(f"{self.name}-{self.sku}")[:520]
        super().save(*args, **kwargs)

    def __str__(self):
        return f"{self.name} ({self.sku})"

    @property
    def in_stock(self) -> bool:
        return self.stock_quantity > 0

    @property
    def is_sale(self) -> bool:
        return bool(self.compare_at_price and self.compare_at_price > self.price)


class ComplianceRule(TimestampedModel):
    """Regulation profile for one product category, seeded once."""

    id = models.UUIDField(primary_key=True, default=uuid.uuid4, editable=False)
    category = models.CharField(
        max_length=20,
        choices=ComplianceCategory.choices,
        unique=True,
    )
    substance_type = models.CharField(max_length=200)
    restricted_states = models.JSONField(
        default=list, help_text="Two-letter state codes where shipping is prohibited"
    )
    age_requirement = models.IntegerField(default=21)
    lab_testing_required = models.BooleanField(default=False)
    batch_tracking_required = models.BooleanField(default=False)
    warning_labels = models.JSONField(default=list)
    shipping_restrictions = models.JSONField(
        default=dict,
        help_text="adult_signature_required, no_international, carriers, max_quantity_per_order, ...",
    )
    is_active = models.BooleanField(default=True)

    class Meta:
        db_table = "compliance_rules"
        ordering = ["category"]

    def __str__(self):
        return f"{self.category} ({self.substance_type})"


class ProductCompliance(models.Model):
    """Link between a product and a compliance rule that applies to it."""

    id = models.UUIDField(primary_key=True, default=uuid.uuid4, editable=False)
    product = models.ForeignKey(
        Product, on_delete=models.CASCADE, related_name="compliance_links"
    )
    compliance_rule = models.ForeignKey(
        ComplianceRule, on_delete=models.CASCADE, related_name="product_links"
    )
    assigned_by = models.CharField(
        max_length=50,
        default="admin",
        help_text="ai_classifier, rule_engine or admin",
    )
    created_at = models.DateTimeField(default=timezone.now)

    class Meta:
        db_table = "product_compliance"
        constraints = [
            models.UniqueConstraint(
                fields=["product", "compliance_rule"], name="unique_product_compliance"
            ),
        ]

    def __str__(self):
        return f"{self.product_id} -> {self.compliance_rule.category}"


class ComplianceAuditLog(models.Model):
    """Append-only record of detected compliance violations."""

    id = models.UUIDField(primary_key=True, default=uuid.uuid4, editable=False)
    product = models.ForeignKey(
        Product, on_delete=models.CASCADE, related_name="audit_logs"
    )
    violation_type = models.CharField(max_length=500)
    severity = models.CharField(max_length=10, choices=ViolationSeverity.choices)
    notes = models.TextField(blank=True)
    detected_by = models.CharField(max_length=50, default="system")
    resolved = models.BooleanField(default=False)
    resolved_by = models.CharField(max_length=100, blank=True)
    resolved_at = models.DateTimeField(null=True, blank=True)
    created_at = models.DateTimeField(default=timezone.now)

    class Meta:
        db_table = "compliance_audit_log"
        ordering = ["-created_at"]
        indexes = [
            models.Index(fields=["severity", "resolved"], name="audit_severity_resolved_idx"),
            models.Index(fields=["product", "created_at"], name="audit_product_created_idx"),
        ]

    def __str__(self):
        return f"[{self.severity}] {self.violation_type}"


class CartItem(TimestampedModel):
    """Cart line owned by a signed-in user or an anonymous session."""

    id = models.UUIDField(primary_key=True, default=uuid.uuid4, editable=False)
    user = models.ForeignKey(
        settings.AUTH_USER_MODEL,
        on_delete=models.CASCADE,
        null=True,
        blank=True,
        related_name="cart_items",
    )
    session_id = models.CharField(max_length=100, blank=True, db_index=True)
    product = models.ForeignKey(Product, on_delete=models.CASCADE, related_name="cart_items")
    quantity = models.PositiveIntegerField(default=1)
    price_at_time = models.DecimalField(max_digits=10, decimal_places=2)

    class Meta:
        db_table = "shopping_cart"
        ordering = ["created_at"]

    def __str__(self):
        return f"{self.quantity} x {self.product_id}"


class Order(TimestampedModel):
    id = models.UUIDField(primary_key=True, default=uuid.uuid4, editable=False)
    order_number = models.CharField(max_length=40, unique=True)
    user = models.ForeignKey(
        settings.AUTH_USER_MODEL,
        on_delete=models.SET_NULL,
        null=True,
        blank=True,
        related_name="orders",
    )
    session_id = models.CharField(max_length=100, blank=True)

    customer_email = models.EmailField()
    customer_first_name = models.CharField(max_length=100)
    customer_last_name = models.CharField(max_length=100)
    customer_phone = models.CharField(max_length=40, blank=True)

    status = models.CharField(
        max_length=20, choices=OrderStatus.choices, default=OrderStatus.PENDING
    )
    payment_status = models.CharField(
        max_length=20, choices=PaymentStatus.choices, default=PaymentStatus.PENDING
    )
    fulfillment_status = models.CharField(
        max_length=20, choices=FulfillmentStatus.choices, default=FulfillmentStatus.UNFULFILLED
    )

    subtotal = models.DecimalField(max_digits=10, decimal_places=2)
    tax_amount = models.DecimalField(max_digits=10, decimal_places=2)
    shipping_amount = models.DecimalField(max_digits=10, decimal_places=2)
    total_amount = models.DecimalField(max_digits=10, decimal_places=2)

    shipping_address = models.JSONField(default=dict)
    billing_address = models.JSONField(default=dict)
    customer_notes = models.TextField(blank=True)
    admin_notes = models.TextField(blank=True)

    shipped_at = models.DateTimeField(null=True, blank=True)
    delivered_at = models.DateTimeField(null=True, blank=True)

    class Meta:
        db_table = "orders"
        ordering = ["-created_at"]
        indexes = [
            models.Index(fields=["status", "created_at"], name="orders_status_created_idx"),
            models.Index(fields=["customer_email"], name="orders_customer_email_idx"),
        ]

    def __str__(self):
        return f"Order {self.order_number} ({self.status})"


class OrderItem(models.Model):
    """Order line with a snapshot of the product at purchase time."""

    id = models.UUIDField(primary_key=True, default=uuid.uuid4, editable=False)
    order = models.ForeignKey(Order, on_delete=models.CASCADE, related_name="items")
    product = models.ForeignKey(
        Product, on_delete=models.SET_NULL, null=True, related_name="order_items"
    )
    product_name = models.CharField(max_length=500)
    product_sku = models.CharField(max_length=100)
    product_image_url = models.URLField(max_length=1000, blank=True)
    unit_price = models.DecimalField(max_digits=10, decimal_places=2)
    quantity = models.PositiveIntegerField()
    total_price = models.DecimalField(max_digits=10, decimal_places=2)
    fulfillment_status = models.CharField(
        max_length=20, choices=FulfillmentStatus.choices, default=FulfillmentStatus.UNFULFILLED
    )
    created_at = models.DateTimeField(default=timezone.now)

    class Meta:
        db_table = "order_items"
        ordering = ["created_at"]

    def __str__(self):
        return f"{self.quantity} x {self.product_name}"


class OrderStatusHistory(models.Model):
    id = models.UUIDField(primary_key=True, default=uuid.uuid4, editable=False)
    order = models.ForeignKey(Order, on_delete=models.CASCADE, related_name="status_history")
    from_status = models.CharField(max_length=20, blank=True)
    to_status = models.CharField(max_length=20, choices=OrderStatus.choices)
    notes = models.TextField(blank=True)
    created_at = models.DateTimeField(default=timezone.now)

    class Meta:
        db_table = "order_status_history"
        ordering = ["created_at"]
        verbose_name_plural = "order status history"

    def __str__(self):
        return f"{self.order_id}: {self.from_status or '-'} -> {self.to_status}"


class SyncRun(models.Model):
    """One invocation of a sync, matching or classification batch."""

    id = models.UUIDField(primary_key=True, default=uuid.uuid4, editable=False)
    source = models.CharField(max_length=20, choices=SyncSource.choices)
    phase = models.CharField(max_length=50, help_text="items, categories, content, ...")
    status = models.CharField(
        max_length=20, choices=SyncRunStatus.choices, default=SyncRunStatus.RUNNING
    )
    dry_run = models.BooleanField(default=False)
    stats = models.JSONField(default=dict, blank=True)
    errors = models.JSONField(default=list, blank=True)
    started_at = models.DateTimeField(default=timezone.now)
    finished_at = models.DateTimeField(null=True, blank=True)

    class Meta:
        db_table = "sync_runs"
        ordering = ["-started_at"]
        indexes = [
            models.Index(fields=["source", "started_at"], name="sync_runs_source_started_idx"),
        ]

    def __str__(self):
        return f"{self.source}/{self.phase} {self.status} ({self.started_at})"

    def finish(self, stats: dict, errors: list, failed: bool = False):
        self.stats = stats
        self.errors = errors[:100]
        self.status = SyncRunStatus.FAILED if failed else SyncRunStatus.COMPLETED
        self.finished_at = timezone.now()
        self.save(update_fields=["stats", "errors", "status", "finished_at"])


class IntegrationError(models.Model):
    """
    Persistent error record for sync and classification failures.

    One row per failed record, so an operator can see which SKU or Airtable
    record broke a batch without digging through logs.
    """

    id = models.UUIDField(primary_key=True, default=uuid.uuid4, editable=False)
    source = models.CharField(max_length=20, choices=SyncSource.choices)
    phase = models.CharField(max_length=50, blank=True)
    record_id = models.CharField(max_length=200, blank=True, help_text="SKU, item id or record id")
    message = models.TextField()
    stack_trace = models.TextField(blank=True)
    timestamp = models.DateTimeField(default=timezone.now)
    resolved = models.BooleanField(default=False)

    class Meta:
        db_table = "integration_errors"
        ordering = ["-timestamp"]
        indexes = [
            models.Index(fields=["source", "timestamp"], name="interr_source_timestamp_idx"),
            models.Index(fields=["resolved"], name="interr_resolved_idx"),
        ]

    def __str__(self):
        return f"{self.source}: {self.message[:50]}... ({self.timestamp})"
