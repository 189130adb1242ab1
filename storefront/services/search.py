"""
Search-as-you-type suggestions.

Candidates are active, main-site products (never nicotine or tobacco) plus
brands whose name contains the query. Each candidate gets a relevance
score from the weight tables below; brand-like queries put the best
matching brands first.
"""

import logging
import re
from dataclasses import dataclass
from typing import Dict, Iterable, List, Optional

from django.db.models import Q

from storefront.models import Brand, Product

logger = logging.getLogger(__name__)


MIN_QUERY_LENGTH = 2
DEFAULT_LIMIT = 8
MAX_LIMIT = 50
MAX_BRAND_SUGGESTIONS = 5
BRAND_SEARCH_MIN_SCORE = 60
BRAND_SEARCH_TOP_BRANDS = 2

EXACT_WEIGHTS = {"name": 1000, "brand": 900, "sku": 800, "manufacturer": 700}
PREFIX_WEIGHTS = {"name": 500, "brand": 450, "sku": 400, "manufacturer": 350}
WORD_WEIGHTS = {"name": 300, "brand": 250, "description": 200}
CONTAINS_WEIGHTS = {
    "name": 150,
    "brand": 120,
    "sku": 100,
    "description": 80,
    "short_description": 70,
    "manufacturer": 60,
    "category": 50,
}
TAG_WEIGHTS = (200, 100)
MATERIAL_WEIGHTS = (150, 75)

FEATURED_BOOST = 100
IN_STOCK_BOOST = 50
IMAGE_BOOST = 25
BRAND_PROMINENCE_BOOST = 150


@dataclass
class SearchDocument:
    """Lower-cased searchable text of a product or brand."""

    name: str = ""
    brand: str = ""
    sku: str = ""
    description: str = ""
    short_description: str = ""
    manufacturer: str = ""
    category: str = ""
    tags: tuple = ()
    materials: tuple = ()
    featured: bool = False
    in_stock: bool = False
    has_image: bool = False

    @classmethod
    def for_product(cls, product: Product) -> "SearchDocument":
        return cls(
            name=product.name.lower(),
            brand=(product.brand.name if product.brand else "").lower(),
            sku=product.sku.lower(),
            description=product.description.lower(),
            short_description=product.short_description.lower(),
            manufacturer=product.manufacturer.lower(),
            category=(product.category.name if product.category else "").lower(),
            tags=tuple(str(t).lower() for t in product.tags or []),
            materials=tuple(str(m).lower() for m in product.materials or []),
            featured=product.featured,
            in_stock=product.stock_quantity > 0,
            has_image=bool(product.image_url),
        )


def _list_score(values: Iterable[str], term: str, weights: tuple) -> int:
    exact, contains = weights
    score = 0
    for value in values:
        if value == term:
            score += exact
        if term in value:
            score += contains
    return score


def relevance_score(doc: SearchDocument, term: str) -> int:
    """Score a document against a lower-cased, stripped query."""
    word = re.compile(rf"\b{re.escape(term)}\b")
    score = 0
    for fieldname, weight in EXACT_WEIGHTS.items():
        if getattr(doc, fieldname) == term:
            score += weight
    for fieldname, weight in PREFIX_WEIGHTS.items():
        if getattr(doc, fieldname).startswith(term):
            score += weight
    for fieldname, weight in WORD_WEIGHTS.items():
        if word.search(getattr(doc, fieldname)):
            score += weight
    for fieldname, weight in CONTAINS_WEIGHTS.items():
        if term in getattr(doc, fieldname):
            score += weight

    score += _list_score(doc.tags, term, TAG_WEIGHTS)
    score += _list_score(doc.materials, term, MATERIAL_WEIGHTS)

    if doc.featured:
        score += FEATURED_BOOST
    if doc.in_stock:
        score += IN_STOCK_BOOST
    if doc.has_image:
        score += IMAGE_BOOST
    if len(term) >= 3 and term in doc.brand:
        score += BRAND_PROMINENCE_BOOST
    return max(0, score)


def _candidate_products(term: str, limit: int) -> List[Product]:
    text_match = (
        Q(name__icontains=term)
        | Q(brand__name__icontains=term)
        | Q(sku__icontains=term)
        | Q(description__icontains=term)
        | Q(short_description__icontains=term)
        | Q(manufacturer__icontains=term)
        | Q(category__name__icontains=term)
    )
    return list(
        Product.objects.filter(text_match)
        .filter(
            is_active=True,
            visible_on_main_site=True,
            nicotine_product=False,
            tobacco_product=False,
        )
        .select_related("brand", "category")
        .distinct()[: limit * 2]
    )


def suggest(query: Optional[str], limit: int = DEFAULT_LIMIT) -> Dict:
    """
    Ranked product and brand suggestions for ``query``.

    Queries shorter than two characters return no suggestions.
    """
    term = (query or "").strip().lower()
    if len(term) < MIN_QUERY_LENGTH:
        return {"query": term, "suggestions": []}
    limit = max(1, min(limit, MAX_LIMIT))

    products = [
        {
            "type": "product",
            "id": str(product.id),
            "title": product.name,
            "subtitle": product.brand.name if product.brand else "Unknown Brand",
            "price": product.price,
            "image": product.image_url,
            "url": f"/products/{product.id}",
            "relevance_score": relevance_score(SearchDocument.for_product(product), term),
        }
        for product in _candidate_products(term, limit)
    ]
    products.sort(key=lambda s: s["relevance_score"], reverse=True)
    products = products[:limit]

    brands = [
        {
            "type": "brand",
            "id": str(brand.id),
            "title": brand.name,
            "subtitle": "Brand",
            "url": f"/brands/{brand.slug or brand.id}",
            "relevance_score": relevance_score(SearchDocument(name=brand.name.lower()), term),
        }
        for brand in Brand.objects.filter(name__icontains=term, is_active=True)[:MAX_BRAND_SUGGESTIONS]
    ]
    brands.sort(key=lambda s: s["relevance_score"], reverse=True)

    brand_search = any(
        term in b["title"].lower() and b["relevance_score"] >= BRAND_SEARCH_MIN_SCORE
        for b in brands
    )
    if brand_search:
        top_brands = brands[:BRAND_SEARCH_TOP_BRANDS]
        suggestions = top_brands + products[: max(0, limit - len(top_brands))]
    else:
        suggestions = sorted(
            products + brands, key=lambda s: s["relevance_score"], reverse=True
        )[:limit]

    logger.debug(f"Search '{term}': {len(suggestions)} suggestions")
    return {"query": term, "suggestions": suggestions}
