"""
REST API for the VIP Smoke storefront.

Mounted under /api/v1/:

- Storefront (anonymous allowed): cart, orders, search suggestions, VIP catalog
- Admin (staff only): Zoho/Airtable sync, product matching, classification
- Compliance (staff only): rules, state checks, audits, audit log

See storefront.api.urls for the full route list.
"""
