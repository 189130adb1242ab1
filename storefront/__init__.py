"""
VIP Smoke storefront Django application.

Catalog sync (Zoho Inventory, Airtable), product matching, compliance
classification and the storefront cart/checkout API.
"""
