"""
Django admin configuration for the storefront back-office.

Catalog (brands, categories, products), compliance rules and audit log,
orders, and the sync run / integration error history.
"""

from django.contrib import admin
from django.utils import timezone
from django.utils.html import format_html

from storefront.models import (
    Brand,
    Category,
    ComplianceAuditLog,
    ComplianceRule,
    IntegrationError,
    Order,
    OrderItem,
    OrderStatusHistory,
    Product,
    ProductCompliance,
    SyncRun,
    SyncRunStatus,
    ViolationSeverity,
)

BADGE_HTML = (
    '<span style="background-color: {}; color: white; '
    'padding: 2px 8px; border-radius: 4px;">{}</span>'
)

SEVERITY_COLORS = {
    ViolationSeverity.LOW: "#6c757d",
    ViolationSeverity.MEDIUM: "#ffc107",
    ViolationSeverity.HIGH: "#fd7e14",
    ViolationSeverity.CRITICAL: "#dc3545",
}


@admin.register(Brand)
class BrandAdmin(admin.ModelAdmin):
    list_display = ["name", "slug", "is_active", "created_at"]
    list_filter = ["is_active"]
    search_fields = ["name", "slug"]
    readonly_fields = ["id", "created_at", "updated_at"]


@admin.register(Category)
class CategoryAdmin(admin.ModelAdmin):
    list_display = ["name", "parent", "zoho_category_id", "sort_order", "is_active"]
    list_filter = ["is_active"]
    search_fields = ["name", "slug", "zoho_category_id"]
    readonly_fields = ["id", "created_at", "updated_at"]


class ProductComplianceInline(admin.TabularInline):
    model = ProductCompliance
    extra = 0
    readonly_fields = ["created_at"]


@admin.register(Product)
class ProductAdmin(admin.ModelAdmin):
    """
    Catalog products with their visibility and classification state.

    Actions re-queue products for classification or restore them to the
    main site after a manual review.
    """

    list_display = [
        "name",
        "sku",
        "brand",
        "price",
        "stock_quantity",
        "is_active",
        "visibility_badge",
        "classification_status",
    ]
    list_filter = [
        "is_active",
        "visible_on_main_site",
        "classification_status",
        "nicotine_product",
        "tobacco_product",
        "featured",
        "vip_exclusive",
    ]
    search_fields = ["name", "sku", "zoho_item_id", "external_record_id"]
    readonly_fields = [
        "id",
        "classification_status",
        "last_classified_at",
        "zoho_item_id",
        "external_record_id",
        "created_at",
        "updated_at",
    ]
    autocomplete_fields = ["brand", "category"]
    inlines = [ProductComplianceInline]
    ordering = ["-created_at"]

    fieldsets = (
        ("Product", {
            "fields": ("id", "name", "slug", "sku", "brand", "category", "manufacturer"),
        }),
        ("Pricing & Stock", {
            "fields": ("price", "vip_price", "compare_at_price", "stock_quantity"),
        }),
        ("Content", {
            "fields": ("description", "short_description", "image_url", "image_urls", "tags", "materials"),
        }),
        ("Visibility", {
            "fields": (
                "is_active",
                "featured",
                "vip_exclusive",
                "requires_membership",
                "visible_on_main_site",
                "hidden_reason",
            ),
        }),
        ("Compliance", {
            "fields": (
                "nicotine_product",
                "tobacco_product",
                "requires_lab_test",
                "age_restriction",
                "lab_test_url",
                "batch_number",
                "expiration_date",
                "warning_labels",
                "classification_status",
                "last_classified_at",
            ),
        }),
        ("Sync", {
            "fields": ("zoho_item_id", "external_record_id", "created_at", "updated_at"),
            "classes": ("collapse",),
        }),
    )

    actions = ["queue_classification", "restore_to_main_site"]

    def visibility_badge(self, obj):
        if obj.visible_on_main_site:
            return format_html(BADGE_HTML, "#28a745", "Visible")
        return format_html(BADGE_HTML, "#dc3545", "Hidden")
    visibility_badge.short_description = "Main site"
    visibility_badge.admin_order_field = "visible_on_main_site"

    @admin.action(description="Queue selected products for classification")
    def queue_classification(self, request, queryset):
        from storefront.tasks import classify_products

        product_ids = [str(pk) for pk in queryset.values_list("id", flat=True)]
        classify_products.delay(product_ids)
        self.message_user(request, f"Queued {len(product_ids)} product(s) for classification.")

    @admin.action(description="Restore selected products to the main site")
    def restore_to_main_site(self, request, queryset):
        count = queryset.update(
            visible_on_main_site=True, hidden_reason="", updated_at=timezone.now()
        )
        self.message_user(request, f"Restored {count} product(s) to the main site.")


@admin.register(ComplianceRule)
class ComplianceRuleAdmin(admin.ModelAdmin):
    list_display = ["category", "substance_type", "age_requirement", "lab_testing_required", "is_active"]
    list_filter = ["is_active", "lab_testing_required", "batch_tracking_required"]
    readonly_fields = ["id", "created_at", "updated_at"]


@admin.register(ComplianceAuditLog)
class ComplianceAuditLogAdmin(admin.ModelAdmin):
    list_display = ["created_at", "product", "violation_type", "severity_badge", "detected_by", "resolved"]
    list_filter = ["severity", "resolved", "detected_by", ("created_at", admin.DateFieldListFilter)]
    search_fields = ["violation_type", "product__name", "product__sku"]
    readonly_fields = ["id", "product", "violation_type", "severity", "notes", "detected_by", "created_at"]
    ordering = ["-created_at"]
    actions = ["mark_resolved"]

    def severity_badge(self, obj):
        color = SEVERITY_COLORS.get(obj.severity, "#6c757d")
        return format_html(BADGE_HTML, color, obj.get_severity_display())
    severity_badge.short_description = "Severity"
    severity_badge.admin_order_field = "severity"

    @admin.action(description="Mark selected violations as resolved")
    def mark_resolved(self, request, queryset):
        count = queryset.filter(resolved=False).update(
            resolved=True,
            resolved_by=request.user.get_username(),
            resolved_at=timezone.now(),
        )
        self.message_user(request, f"Marked {count} violation(s) as resolved.")

    def has_add_permission(self, request):
        return False


class OrderItemInline(admin.TabularInline):
    model = OrderItem
    extra = 0
    readonly_fields = ["product", "product_name", "product_sku", "unit_price", "quantity", "total_price"]


class OrderStatusHistoryInline(admin.TabularInline):
    model = OrderStatusHistory
    extra = 0
    readonly_fields = ["from_status", "to_status", "notes", "created_at"]


@admin.register(Order)
class OrderAdmin(admin.ModelAdmin):
    list_display = [
        "order_number",
        "customer_email",
        "status",
        "payment_status",
        "fulfillment_status",
        "total_amount",
        "created_at",
    ]
    list_filter = ["status", "payment_status", "fulfillment_status"]
    search_fields = ["order_number", "customer_email", "customer_last_name"]
    readonly_fields = [
        "id",
        "order_number",
        "subtotal",
        "tax_amount",
        "shipping_amount",
        "total_amount",
        "created_at",
        "updated_at",
    ]
    inlines = [OrderItemInline, OrderStatusHistoryInline]
    ordering = ["-created_at"]


@admin.register(SyncRun)
class SyncRunAdmin(admin.ModelAdmin):
    list_display = ["started_at", "source", "phase", "status_badge", "dry_run", "finished_at"]
    list_filter = ["source", "status", "dry_run"]
    readonly_fields = ["id", "source", "phase", "status", "dry_run", "stats", "errors", "started_at", "finished_at"]
    ordering = ["-started_at"]

    def status_badge(self, obj):
        colors = {
            SyncRunStatus.RUNNING: "#007bff",
            SyncRunStatus.COMPLETED: "#28a745",
            SyncRunStatus.FAILED: "#dc3545",
        }
        return format_html(BADGE_HTML, colors.get(obj.status, "#6c757d"), obj.get_status_display())
    status_badge.short_description = "Status"
    status_badge.admin_order_field = "status"

    def has_add_permission(self, request):
        return False


@admin.register(IntegrationError)
class IntegrationErrorAdmin(admin.ModelAdmin):
    list_display = ["timestamp", "source", "phase", "record_id", "message_truncated", "resolved"]
    list_filter = ["source", "phase", "resolved", ("timestamp", admin.DateFieldListFilter)]
    search_fields = ["record_id", "message"]
    readonly_fields = ["id", "source", "phase", "record_id", "message", "stack_trace_formatted", "timestamp"]
    exclude = ["stack_trace"]
    ordering = ["-timestamp"]
    actions = ["mark_resolved", "mark_unresolved"]

    def message_truncated(self, obj):
        max_length = 80
        if len(obj.message) > max_length:
            return obj.message[:max_length] + "..."
        return obj.message
    message_truncated.short_description = "Message"

    def stack_trace_formatted(self, obj):
        if obj.stack_trace:
            return format_html(
                '<pre style="white-space: pre-wrap; word-wrap: break-word; '
                'background: #f5f5f5; padding: 10px; border-radius: 4px;">{}</pre>',
                obj.stack_trace
            )
        return "-"
    stack_trace_formatted.short_description = "Stack Trace"

    @admin.action(description="Mark selected errors as resolved")
    def mark_resolved(self, request, queryset):
        count = queryset.update(resolved=True)
        self.message_user(request, f"Marked {count} error(s) as resolved.")

    @admin.action(description="Mark selected errors as unresolved")
    def mark_unresolved(self, request, queryset):
        count = queryset.update(resolved=False)
        self.message_user(request, f"Marked {count} error(s) as unresolved.")

    def has_add_permission(self, request):
        return False
