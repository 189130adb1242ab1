"""
Migration: Initial storefront schema.

Creates the catalog (brands, categories, products), compliance
(rules, product links, audit log), cart and order tables, and the
sync run / integration error history.
"""

import uuid
from decimal import Decimal

import django.core.validators
import django.db.models.deletion
import django.utils.timezone
from django.conf import settings
from django.db import migrations, models


ORDER_STATUS_CHOICES = [
    ("pending", "Pending"),
    ("confirmed", "Confirmed"),
    ("processing", "Processing"),
    ("shipped", "Shipped"),
    ("delivered", "Delivered"),
    ("cancelled", "Cancelled"),
    ("refunded", "Refunded"),
]

FULFILLMENT_STATUS_CHOICES = [
    ("unfulfilled", "Unfulfilled"),
    ("partial", "Partially Fulfilled"),
    ("fulfilled", "Fulfilled"),
]

SYNC_SOURCE_CHOICES = [
    ("zoho", "Zoho Inventory"),
    ("airtable", "Airtable"),
    ("matcher", "Product Matcher"),
    ("classifier", "Background Classifier"),
]


class Migration(migrations.Migration):

    initial = True

    dependencies = [
        migrations.swappable_dependency(settings.AUTH_USER_MODEL),
    ]

    operations = [
        migrations.CreateModel(
            name="Brand",
            fields=[
                ("created_at", models.DateTimeField(default=django.utils.timezone.now)),
                ("updated_at", models.DateTimeField(default=django.utils.timezone.now)),
                (
                    "id",
                    models.UUIDField(
                        default=uuid.uuid4, editable=False, primary_key=True, serialize=False
                    ),
                ),
                ("name", models.CharField(max_length=200)),
                ("slug", models.SlugField(blank=True, max_length=220, unique=True)),
                ("description", models.TextField(blank=True)),
                ("logo_url", models.URLField(blank=True, max_length=1000)),
                ("website", models.URLField(blank=True, max_length=500)),
                ("is_active", models.BooleanField(default=True)),
            ],
            options={
                "db_table": "brands",
                "ordering": ["name"],
            },
        ),
        migrations.CreateModel(
            name="Category",
            fields=[
                ("created_at", models.DateTimeField(default=django.utils.timezone.now)),
                ("updated_at", models.DateTimeField(default=django.utils.timezone.now)),
                (
                    "id",
                    models.UUIDField(
                        default=uuid.uuid4, editable=False, primary_key=True, serialize=False
                    ),
                ),
                ("name", models.CharField(max_length=200)),
                ("slug", models.SlugField(blank=True, max_length=220, unique=True)),
                ("description", models.TextField(blank=True)),
                ("zoho_category_id", models.CharField(blank=True, db_index=True, max_length=100)),
                ("is_active", models.BooleanField(default=True)),
                ("sort_order", models.IntegerField(default=0)),
                (
                    "parent",
                    models.ForeignKey(
                        blank=True,
                        null=True,
                        on_delete=django.db.models.deletion.SET_NULL,
                        related_name="children",
                        to="storefront.category",
                    ),
                ),
            ],
            options={
                "db_table": "categories",
                "ordering": ["sort_order", "name"],
                "verbose_name_plural": "categories",
            },
        ),
        migrations.CreateModel(
            name="ComplianceRule",
            fields=[
                ("created_at", models.DateTimeField(default=django.utils.timezone.now)),
                ("updated_at", models.DateTimeField(default=django.utils.timezone.now)),
                (
                    "id",
                    models.UUIDField(
                        default=uuid.uuid4, editable=False, primary_key=True, serialize=False
                    ),
                ),
                (
                    "category",
                    models.CharField(
                        choices=[
                            ("THCA", "THCA"),
                            ("Kratom", "Kratom"),
                            ("7-Hydroxy", "7-Hydroxy"),
                            ("Nicotine", "Nicotine"),
                        ],
                        max_length=20,
                        unique=True,
                    ),
                ),
                ("substance_type", models.CharField(max_length=200)),
                (
                    "restricted_states",
                    models.JSONField(
                        default=list,
                        help_text="Two-letter state codes where shipping is prohibited",
                    ),
                ),
                ("age_requirement", models.IntegerField(default=21)),
                ("lab_testing_required", models.BooleanField(default=False)),
                ("batch_tracking_required", models.BooleanField(default=False)),
                ("warning_labels", models.JSONField(default=list)),
                (
                    "shipping_restrictions",
                    models.JSONField(
                        default=dict,
                        help_text="adult_signature_required, no_international, carriers, max_quantity_per_order, ...",
                    ),
                ),
                ("is_active", models.BooleanField(default=True)),
            ],
            options={
                "db_table": "compliance_rules",
                "ordering": ["category"],
            },
        ),
        migrations.CreateModel(
            name="Product",
            fields=[
                ("created_at", models.DateTimeField(default=django.utils.timezone.now)),
                ("updated_at", models.DateTimeField(default=django.utils.timezone.now)),
                (
                    "id",
                    models.UUIDField(
                        default=uuid.uuid4, editable=False, primary_key=True, serialize=False
                    ),
                ),
                ("name", models.CharField(max_length=500)),
                ("slug", models.SlugField(blank=True, db_index=True, max_length=520)),
                ("sku", models.CharField(help_text="Retailer SKU", max_length=100, unique=True)),
                ("description", models.TextField(blank=True)),
                ("short_description", models.CharField(blank=True, max_length=500)),
                (
                    "price",
                    models.DecimalField(
                        decimal_places=2,
                        default=Decimal("0.00"),
                        max_digits=10,
                        validators=[django.core.validators.MinValueValidator(Decimal("0.00"))],
                    ),
                ),
                (
                    "vip_price",
                    models.DecimalField(blank=True, decimal_places=2, max_digits=10, null=True),
                ),
                (
                    "compare_at_price",
                    models.DecimalField(
                        blank=True,
                        decimal_places=2,
                        help_text="Original price, a product is on sale when this is above price",
                        max_digits=10,
                        null=True,
                    ),
                ),
                ("stock_quantity", models.IntegerField(default=0)),
                ("manufacturer", models.CharField(blank=True, max_length=200)),
                ("image_url", models.URLField(blank=True, max_length=1000)),
                ("image_urls", models.JSONField(blank=True, default=list)),
                ("is_active", models.BooleanField(default=True)),
                ("featured", models.BooleanField(default=False)),
                ("vip_exclusive", models.BooleanField(default=False)),
                ("requires_membership", models.BooleanField(default=False)),
                ("nicotine_product", models.BooleanField(default=False)),
                ("tobacco_product", models.BooleanField(default=False)),
                ("requires_lab_test", models.BooleanField(default=False)),
                (
                    "age_restriction",
                    models.IntegerField(blank=True, help_text="Minimum buyer age", null=True),
                ),
                ("visible_on_main_site", models.BooleanField(default=True)),
                ("hidden_reason", models.CharField(blank=True, max_length=500)),
                (
                    "classification_status",
                    models.CharField(
                        choices=[
                            ("unclassified", "Unclassified"),
                            ("queued", "Queued"),
                            ("rule_checked", "Rule Checked"),
                            ("ai_checked", "AI Checked"),
                            ("hidden", "Hidden"),
                            ("visible", "Visible"),
                            ("failed", "Failed"),
                        ],
                        default="unclassified",
                        max_length=20,
                    ),
                ),
                ("last_classified_at", models.DateTimeField(blank=True, null=True)),
                ("lab_test_url", models.URLField(blank=True, max_length=1000)),
                ("batch_number", models.CharField(blank=True, max_length=100)),
                ("expiration_date", models.DateField(blank=True, null=True)),
                ("warning_labels", models.JSONField(blank=True, default=list)),
                ("attributes", models.JSONField(blank=True, default=dict)),
                ("specs", models.JSONField(blank=True, default=dict)),
                ("tags", models.JSONField(blank=True, default=list)),
                ("materials", models.JSONField(blank=True, default=list)),
                ("zoho_item_id", models.CharField(blank=True, db_index=True, max_length=100)),
                (
                    "external_record_id",
                    models.CharField(
                        blank=True,
                        help_text="Airtable record id the content was copied from",
                        max_length=100,
                    ),
                ),
                (
                    "brand",
                    models.ForeignKey(
                        blank=True,
                        null=True,
                        on_delete=django.db.models.deletion.SET_NULL,
                        related_name="products",
                        to="storefront.brand",
                    ),
                ),
                (
                    "category",
                    models.ForeignKey(
                        blank=True,
                        null=True,
                        on_delete=django.db.models.deletion.SET_NULL,
                        related_name="products",
                        to="storefront.category",
                    ),
                ),
            ],
            options={
                "db_table": "products",
                "ordering": ["-featured", "-created_at"],
                "indexes": [
                    models.Index(
                        fields=["is_active", "visible_on_main_site"],
                        name="products_active_visible_idx",
                    ),
                    models.Index(fields=["classification_status"], name="products_class_status_idx"),
                    models.Index(fields=["vip_exclusive", "is_active"], name="products_vip_active_idx"),
                ],
            },
        ),
        migrations.CreateModel(
            name="ProductCompliance",
            fields=[
                (
                    "id",
                    models.UUIDField(
                        default=uuid.uuid4, editable=False, primary_key=True, serialize=False
                    ),
                ),
                (
                    "assigned_by",
                    models.CharField(
                        default="admin",
                        help_text="ai_classifier, rule_engine or admin",
                        max_length=50,
                    ),
                ),
                ("created_at", models.DateTimeField(default=django.utils.timezone.now)),
                (
                    "compliance_rule",
                    models.ForeignKey(
                        on_delete=django.db.models.deletion.CASCADE,
                        related_name="product_links",
                        to="storefront.compliancerule",
                    ),
                ),
                (
                    "product",
                    models.ForeignKey(
                        on_delete=django.db.models.deletion.CASCADE,
                        related_name="compliance_links",
                        to="storefront.product",
                    ),
                ),
            ],
            options={
                "db_table": "product_compliance",
                "constraints": [
                    models.UniqueConstraint(
                        fields=("product", "compliance_rule"), name="unique_product_compliance"
                    ),
                ],
            },
        ),
        migrations.CreateModel(
            name="ComplianceAuditLog",
            fields=[
                (
                    "id",
                    models.UUIDField(
                        default=uuid.uuid4, editable=False, primary_key=True, serialize=False
                    ),
                ),
                ("violation_type", models.CharField(max_length=500)),
                (
                    "severity",
                    models.CharField(
                        choices=[
                            ("low", "Low"),
                            ("medium", "Medium"),
                            ("high", "High"),
                            ("critical", "Critical"),
                        ],
                        max_length=10,
                    ),
                ),
                ("notes", models.TextField(blank=True)),
                ("detected_by", models.CharField(default="system", max_length=50)),
                ("resolved", models.BooleanField(default=False)),
                ("resolved_by", models.CharField(blank=True, max_length=100)),
                ("resolved_at", models.DateTimeField(blank=True, null=True)),
                ("created_at", models.DateTimeField(default=django.utils.timezone.now)),
                (
                    "product",
                    models.ForeignKey(
                        on_delete=django.db.models.deletion.CASCADE,
                        related_name="audit_logs",
                        to="storefront.product",
                    ),
                ),
            ],
            options={
                "db_table": "compliance_audit_log",
                "ordering": ["-created_at"],
                "indexes": [
                    models.Index(fields=["severity", "resolved"], name="audit_severity_resolved_idx"),
                    models.Index(fields=["product", "created_at"], name="audit_product_created_idx"),
                ],
            },
        ),
        migrations.CreateModel(
            name="CartItem",
            fields=[
                ("created_at", models.DateTimeField(default=django.utils.timezone.now)),
                ("updated_at", models.DateTimeField(default=django.utils.timezone.now)),
                (
                    "id",
                    models.UUIDField(
                        default=uuid.uuid4, editable=False, primary_key=True, serialize=False
                    ),
                ),
                ("session_id", models.CharField(blank=True, db_index=True, max_length=100)),
                ("quantity", models.PositiveIntegerField(default=1)),
                ("price_at_time", models.DecimalField(decimal_places=2, max_digits=10)),
                (
                    "product",
                    models.ForeignKey(
                        on_delete=django.db.models.deletion.CASCADE,
                        related_name="cart_items",
                        to="storefront.product",
                    ),
                ),
                (
                    "user",
                    models.ForeignKey(
                        blank=True,
                        null=True,
                        on_delete=django.db.models.deletion.CASCADE,
                        related_name="cart_items",
                        to=settings.AUTH_USER_MODEL,
                    ),
                ),
            ],
            options={
                "db_table": "shopping_cart",
                "ordering": ["created_at"],
            },
        ),
        migrations.CreateModel(
            name="Order",
            fields=[
                ("created_at", models.DateTimeField(default=django.utils.timezone.now)),
                ("updated_at", models.DateTimeField(default=django.utils.timezone.now)),
                (
                    "id",
                    models.UUIDField(
                        default=uuid.uuid4, editable=False, primary_key=True, serialize=False
                    ),
                ),
                ("order_number", models.CharField(max_length=40, unique=True)),
                ("session_id", models.CharField(blank=True, max_length=100)),
                ("customer_email", models.EmailField(max_length=254)),
                ("customer_first_name", models.CharField(max_length=100)),
                ("customer_last_name", models.CharField(max_length=100)),
                ("customer_phone", models.CharField(blank=True, max_length=40)),
                (
                    "status",
                    models.CharField(choices=ORDER_STATUS_CHOICES, default="pending", max_length=20),
                ),
                (
                    "payment_status",
                    models.CharField(
                        choices=[
                            ("pending", "Pending"),
                            ("paid", "Paid"),
                            ("failed", "Failed"),
                            ("refunded", "Refunded"),
                        ],
                        default="pending",
                        max_length=20,
                    ),
                ),
                (
                    "fulfillment_status",
                    models.CharField(
                        choices=FULFILLMENT_STATUS_CHOICES, default="unfulfilled", max_length=20
                    ),
                ),
                ("subtotal", models.DecimalField(decimal_places=2, max_digits=10)),
                ("tax_amount", models.DecimalField(decimal_places=2, max_digits=10)),
                ("shipping_amount", models.DecimalField(decimal_places=2, max_digits=10)),
                ("total_amount", models.DecimalField(decimal_places=2, max_digits=10)),
                ("shipping_address", models.JSONField(default=dict)),
                ("billing_address", models.JSONField(default=dict)),
                ("customer_notes", models.TextField(blank=True)),
                ("admin_notes", models.TextField(blank=True)),
                ("shipped_at", models.DateTimeField(blank=True, null=True)),
                ("delivered_at", models.DateTimeField(blank=True, null=True)),
                (
                    "user",
                    models.ForeignKey(
                        blank=True,
                        null=True,
                        on_delete=django.db.models.deletion.SET_NULL,
                        related_name="orders",
                        to=settings.AUTH_USER_MODEL,
                    ),
                ),
            ],
            options={
                "db_table": "orders",
                "ordering": ["-created_at"],
                "indexes": [
                    models.Index(fields=["status", "created_at"], name="orders_status_created_idx"),
                    models.Index(fields=["customer_email"], name="orders_customer_email_idx"),
                ],
            },
        ),
        migrations.CreateModel(
            name="OrderItem",
            fields=[
                (
                    "id",
                    models.UUIDField(
                        default=uuid.uuid4, editable=False, primary_key=True, serialize=False
                    ),
                ),
                ("product_name", models.CharField(max_length=500)),
                ("product_sku", models.CharField(max_length=100)),
                ("product_image_url", models.URLField(blank=True, max_length=1000)),
                ("unit_price", models.DecimalField(decimal_places=2, max_digits=10)),
                ("quantity", models.PositiveIntegerField()),
                ("total_price", models.DecimalField(decimal_places=2, max_digits=10)),
                (
                    "fulfillment_status",
                    models.CharField(
                        choices=FULFILLMENT_STATUS_CHOICES, default="unfulfilled", max_length=20
                    ),
                ),
                ("created_at", models.DateTimeField(default=django.utils.timezone.now)),
                (
                    "order",
                    models.ForeignKey(
                        on_delete=django.db.models.deletion.CASCADE,
                        related_name="items",
                        to="storefront.order",
                    ),
                ),
                (
                    "product",
                    models.ForeignKey(
                        null=True,
                        on_delete=django.db.models.deletion.SET_NULL,
                        related_name="order_items",
                        to="storefront.product",
                    ),
                ),
            ],
            options={
                "db_table": "order_items",
                "ordering": ["created_at"],
            },
        ),
        migrations.CreateModel(
            name="OrderStatusHistory",
            fields=[
                (
                    "id",
                    models.UUIDField(
                        default=uuid.uuid4, editable=False, primary_key=True, serialize=False
                    ),
                ),
                ("from_status", models.CharField(blank=True, max_length=20)),
                ("to_status", models.CharField(choices=ORDER_STATUS_CHOICES, max_length=20)),
                ("notes", models.TextField(blank=True)),
                ("created_at", models.DateTimeField(default=django.utils.timezone.now)),
                (
                    "order",
                    models.ForeignKey(
                        on_delete=django.db.models.deletion.CASCADE,
                        related_name="status_history",
                        to="storefront.order",
                    ),
                ),
            ],
            options={
                "db_table": "order_status_history",
                "ordering": ["created_at"],
                "verbose_name_plural": "order status history",
            },
        ),
        migrations.CreateModel(
            name="SyncRun",
            fields=[
                (
                    "id",
                    models.UUIDField(
                        default=uuid.uuid4, editable=False, primary_key=True, serialize=False
                    ),
                ),
                ("source", models.CharField(choices=SYNC_SOURCE_CHOICES, max_length=20)),
                (
                    "phase",
                    models.CharField(help_text="items, categories, content, ...", max_length=50),
                ),
                (
                    "status",
                    models.CharField(
                        choices=[
                            ("running", "Running"),
                            ("completed", "Completed"),
                            ("failed", "Failed"),
                        ],
                        default="running",
                        max_length=20,
                    ),
                ),
                ("dry_run", models.BooleanField(default=False)),
                ("stats", models.JSONField(blank=True, default=dict)),
                ("errors", models.JSONField(blank=True, default=list)),
                ("started_at", models.DateTimeField(default=django.utils.timezone.now)),
                ("finished_at", models.DateTimeField(blank=True, null=True)),
            ],
            options={
                "db_table": "sync_runs",
                "ordering": ["-started_at"],
                "indexes": [
                    models.Index(fields=["source", "started_at"], name="sync_runs_source_started_idx"),
                ],
            },
        ),
        migrations.CreateModel(
            name="IntegrationError",
            fields=[
                (
                    "id",
                    models.UUIDField(
                        default=uuid.uuid4, editable=False, primary_key=True, serialize=False
                    ),
                ),
                ("source", models.CharField(choices=SYNC_SOURCE_CHOICES, max_length=20)),
                ("phase", models.CharField(blank=True, max_length=50)),
                (
                    "record_id",
                    models.CharField(
                        blank=True, help_text="SKU, item id or record id", max_length=200
                    ),
                ),
                ("message", models.TextField()),
                ("stack_trace", models.TextField(blank=True)),
                ("timestamp", models.DateTimeField(default=django.utils.timezone.now)),
                ("resolved", models.BooleanField(default=False)),
            ],
            options={
                "db_table": "integration_errors",
                "ordering": ["-timestamp"],
                "indexes": [
                    models.Index(fields=["source", "timestamp"], name="interr_source_timestamp_idx"),
                    models.Index(fields=["resolved"], name="interr_resolved_idx"),
                ],
            },
        ),
    ]
