"""
API URL configuration.

Storefront:
- GET/POST/PUT/DELETE /api/v1/cart/                  - Cart read/add/update/clear
- GET/POST  /api/v1/orders/                          - Order lookup / checkout
- POST      /api/v1/orders/compliance/               - Order compliance pre-check
- GET       /api/v1/search/suggestions/              - Search suggestions
- GET/POST  /api/v1/vip/products/                    - VIP catalog / create product

Admin:
- POST /api/v1/admin/sync/zoho/<phase>/              - Zoho sync phase
- POST /api/v1/admin/sync/airtable/                  - Airtable content sync
- POST /api/v1/admin/matching/run/                   - Product matcher run
- GET  /api/v1/admin/classification/stats/           - Classifier stats
- POST /api/v1/admin/classification/classify-all/    - Queue unclassified products
- POST /api/v1/admin/classification/classify/<id>/   - Queue one product
- POST /api/v1/admin/classification/config/          - Update classifier config

Compliance:
- GET  /api/v1/compliance/rules/                     - Compliance rules
- POST /api/v1/compliance/rules/initialize/          - Seed default rules
- GET  /api/v1/compliance/products/<id>/state/<st>/  - State shipping check
- GET  /api/v1/compliance/products/<id>/summary/     - Product compliance summary
- POST /api/v1/compliance/products/<id>/audit/       - Audit one product
- POST /api/v1/compliance/products/<id>/assign/      - Assign a compliance category
- POST /api/v1/compliance/audit/all/                 - Audit every regulated product
- GET  /api/v1/compliance/audit/logs/                - Audit log
"""

from django.urls import path

from storefront.api import views

app_name = "storefront_api"

urlpatterns = [
    # Storefront
    path("cart/", views.cart, name="cart"),
    path("orders/", views.orders, name="orders"),
    path("orders/compliance/", views.order_compliance, name="order_compliance"),
    path("search/suggestions/", views.search_suggestions, name="search_suggestions"),
    path("vip/products/", views.vip_products, name="vip_products"),

    # Admin sync and matching
    path("admin/sync/zoho/<str:phase>/", views.sync_zoho, name="sync_zoho"),
    path("admin/sync/airtable/", views.sync_airtable, name="sync_airtable"),
    path("admin/matching/run/", views.run_matching, name="run_matching"),

    # Admin classification
    path("admin/classification/stats/", views.classification_stats, name="classification_stats"),
    path("admin/classification/classify-all/", views.classify_all, name="classify_all"),
    path(
        "admin/classification/classify/<uuid:product_id>/",
        views.classify_product,
        name="classify_product",
    ),
    path("admin/classification/config/", views.classification_config, name="classification_config"),

    # Compliance
    path("compliance/rules/", views.compliance_rules, name="compliance_rules"),
    path(
        "compliance/rules/initialize/",
        views.initialize_compliance_rules,
        name="initialize_compliance_rules",
    ),
    path(
        "compliance/products/<uuid:product_id>/state/<str:state>/",
        views.product_state_compliance,
        name="product_state_compliance",
    ),
    path(
        "compliance/products/<uuid:product_id>/summary/",
        views.product_compliance_summary,
        name="product_compliance_summary",
    ),
    path(
        "compliance/products/<uuid:product_id>/audit/",
        views.audit_product,
        name="audit_product",
    ),
    path(
        "compliance/products/<uuid:product_id>/assign/",
        views.assign_compliance,
        name="assign_compliance",
    ),
    path("compliance/audit/all/", views.audit_all, name="audit_all"),
    path("compliance/audit/logs/", views.audit_logs, name="audit_logs"),
]
