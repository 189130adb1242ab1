"""
Storefront services.

- product_matcher / content_sync: pair products with Airtable records and copy content
- compliance_rules / compliance_service: keyword rules, state checks, audits
- ai_classifier / background_classifier: LLM classification and the classification queue
- zoho_sync: Zoho Inventory catalog sync
- cart / checkout / search: storefront pricing, orders and suggestions
"""
