"""
Product/content matcher.

Pairs internal catalog products with external (Airtable) content records:

1. Exact normalized SKU (score = 1.0)
2. Partial SKU, one SKU contains the other (score = 0.8)
3. Identifier tokens pulled from both names: brand (0.4), model
   (0.3 exact / 0.2 partial), size (0.15) plus a keyword overlap bonus
   (shared keywords / larger keyword set * 0.15)

Pairs under the threshold are dropped, then pairs are assigned greedily by
descending score so each product and each external record is used once.
The matcher is pure: loading records and writing results is the caller's job.
"""

import logging
import re
from dataclasses import dataclass, field
from typing import Any, Dict, Iterable, List, Optional, Sequence, Tuple

from storefront.integrations.types import ExternalRecord
from storefront.services.rule_table import (
    BRAND_VOCABULARY,
    MATCH_STOP_WORDS,
    MAX_MATCH_KEYWORDS,
    MODEL_PATTERNS,
    SIZE_PATTERNS,
)

logger = logging.getLogger(__name__)


EXACT_SKU_SCORE = 1.0
PARTIAL_SKU_SCORE = 0.8
BRAND_WEIGHT = 0.4
MODEL_EXACT_WEIGHT = 0.3
MODEL_PARTIAL_WEIGHT = 0.2
SIZE_WEIGHT = 0.15
KEYWORD_WEIGHT = 0.15

# Shorter SKUs contain each other by accident ("R1" in "GR10")
MIN_PARTIAL_SKU_LENGTH = 4

_BRAND_REGEXES = {
    brand: tuple(re.compile(p) for p in patterns)
    for brand, patterns in BRAND_VOCABULARY.items()
}
_MODEL_REGEXES = tuple(re.compile(p) for p in MODEL_PATTERNS)
_SIZE_REGEXES = tuple((re.compile(p), unit) for p, unit in SIZE_PATTERNS)
_WORD_RE = re.compile(r"[A-Z0-9]+")


def normalize_sku(sku: Optional[str]) -> str:
    """Upper-case a SKU and strip everything but letters and digits."""
    if not sku:
        return ""
    return re.sub(r"[^A-Z0-9]", "", str(sku).upper())


@dataclass(frozen=True)
class ProductIdentifiers:
    brand: Optional[str] = None
    model: Optional[str] = None
    size: Optional[str] = None
    keywords: Tuple[str, ...] = ()


def extract_identifiers(name: str) -> ProductIdentifiers:
    """Pull brand, model, size and keyword tokens out of a product name."""
    upper = (name or "").upper()

    brand = None
    for brand_name, regexes in _BRAND_REGEXES.items():
        if any(r.search(upper) for r in regexes):
            brand = brand_name
            break

    model = None
    for regex in _MODEL_REGEXES:
        match = regex.search(upper)
        if match:
            model = re.sub(r"\s+", "", match.group(1)).strip("-")
            if model:
                break
            model = None

    size = None
    for regex, unit in _SIZE_REGEXES:
        match = regex.search(upper)
        if match:
            size = f"{match.group(1)}{unit}"
            break

    keywords: List[str] = []
    for word in _WORD_RE.findall(upper):
        if len(word) > 2 and word not in MATCH_STOP_WORDS and word not in keywords:
            keywords.append(word)

    return ProductIdentifiers(
        brand=brand,
        model=model,
        size=size,
        keywords=tuple(keywords[:MAX_MATCH_KEYWORDS]),
    )


@dataclass
class MatchScore:
    score: float
    signals: List[str] = field(default_factory=list)

    @property
    def is_exact_sku(self) -> bool:
        return "exact_sku" in self.signals


def score_identifiers(a: ProductIdentifiers, b: ProductIdentifiers) -> MatchScore:
    """Weighted token score between two names' identifiers."""
    score = 0.0
    signals: List[str] = []

    if a.brand and b.brand and a.brand == b.brand:
        score += BRAND_WEIGHT
        signals.append("brand_exact")

    if a.model and b.model:
        if a.model == b.model:
            score += MODEL_EXACT_WEIGHT
            signals.append("model_exact")
        elif a.model in b.model or b.model in a.model:
            score += MODEL_PARTIAL_WEIGHT
            signals.append("model_partial")

    if a.size and b.size and a.size == b.size:
        score += SIZE_WEIGHT
        signals.append("size_match")

    if a.keywords and b.keywords:
        shared = len(set(a.keywords) & set(b.keywords))
        if shared:
            score += shared / max(len(a.keywords), len(b.keywords)) * KEYWORD_WEIGHT
            signals.append(f"keywords_{shared}")

    return MatchScore(score=round(min(score, 1.0), 4), signals=signals)


def score_skus(sku_a: str, sku_b: str) -> Optional[MatchScore]:
    """SKU stage score for two normalized SKUs, or None when SKUs don't decide."""
    if not sku_a or not sku_b:
        return None
    if sku_a == sku_b:
        return MatchScore(score=EXACT_SKU_SCORE, signals=["exact_sku"])
    shorter = min(len(sku_a), len(sku_b))
    if shorter >= MIN_PARTIAL_SKU_LENGTH and (sku_a in sku_b or sku_b in sku_a):
        return MatchScore(score=PARTIAL_SKU_SCORE, signals=["partial_sku"])
    return None


@dataclass
class ProductMatch:
    """One product paired with one external record."""

    product: Any
    record: ExternalRecord
    score: float
    signals: List[str]

    def to_dict(self) -> Dict:
        return {
            "product_id": str(self.product.id),
            "product_name": self.product.name,
            "product_sku": self.product.sku,
            "record_id": self.record.record_id,
            "record_name": self.record.name,
            "record_sku": self.record.sku,
            "score": self.score,
            "signals": list(self.signals),
            "image_url": self.record.image_url,
        }


@dataclass
class MatchReport:
    threshold: float
    matches: List[ProductMatch] = field(default_factory=list)
    products_evaluated: int = 0
    records_evaluated: int = 0
    candidates_found: int = 0
    skipped: int = 0
    errors: List[str] = field(default_factory=list)

    @property
    def match_rate(self) -> float:
        if not self.products_evaluated:
            return 0.0
        return round(len(self.matches) / self.products_evaluated, 4)

    def to_dict(self) -> Dict:
        return {
            "threshold": self.threshold,
            "products_evaluated": self.products_evaluated,
            "records_evaluated": self.records_evaluated,
            "candidates_found": self.candidates_found,
            "matched": len(self.matches),
            "match_rate": self.match_rate,
            "skipped": self.skipped,
            "errors": list(self.errors),
            "matches": [m.to_dict() for m in self.matches],
        }


@dataclass
class _Prepared:
    item: Any
    sku: str
    identifiers: ProductIdentifiers


class ProductMatcher:
    """
    Matches internal products to external content records.

    ``products`` can be any objects with ``id``, ``name`` and ``sku``
    attributes (usually Product rows).
    """

    def __init__(self, threshold: float = 0.5):
        if not 0.0 <= threshold <= 1.0:
            raise ValueError(f"threshold must be between 0 and 1, got {threshold}")
        self.threshold = threshold

    def score_pair(self, product: Any, record: ExternalRecord) -> MatchScore:
        """Score a single product/record pair."""
        sku_score = score_skus(normalize_sku(product.sku), normalize_sku(record.sku))
        if sku_score is not None:
            return sku_score
        return score_identifiers(
            extract_identifiers(product.name), extract_identifiers(record.name)
        )

    def _prepare(
        self, items: Iterable[Any], report: MatchReport, label: str
    ) -> List[_Prepared]:
        prepared = []
        for item in items:
            name = getattr(item, "name", "") or ""
            sku = getattr(item, "sku", "") or ""
            if not name.strip() and not sku.strip():
                report.skipped += 1
                logger.debug(f"Skipping {label} without name or SKU: {item!r}")
                continue
            try:
                prepared.append(
                    _Prepared(item=item, sku=normalize_sku(sku), identifiers=extract_identifiers(name))
                )
            except Exception as e:
                report.skipped += 1
                report.errors.append(f"{label} {name or sku}: {e}")
                logger.warning(f"Could not extract identifiers from {label} '{name}': {e}")
        return prepared

    def match(
        self, products: Sequence[Any], records: Sequence[ExternalRecord]
    ) -> MatchReport:
        """
        Compute the best one-to-one pairing between products and records.

        Returns:
            MatchReport with matches sorted by descending score
        """
        report = MatchReport(
            threshold=self.threshold,
            products_evaluated=len(products),
            records_evaluated=len(records),
        )
        left = self._prepare(products, report, "product")
        right = self._prepare(records, report, "record")

        candidates: List[Tuple[float, bool, int, int, List[str]]] = []
        for i, product in enumerate(left):
            for j, record in enumerate(right):
                result = score_skus(product.sku, record.sku)
                if result is None:
                    result = score_identifiers(product.identifiers, record.identifiers)
                if result.score >= self.threshold and result.score > 0:
                    candidates.append((result.score, result.is_exact_sku, i, j, result.signals))

        report.candidates_found = len(candidates)

        # Exact SKU wins ties against an equally scored token match
        candidates.sort(key=lambda c: (c[0], c[1]), reverse=True)

        used_products = set()
        used_records = set()
        for score, _, i, j, signals in candidates:
            if i in used_products or j in used_records:
                continue
            used_products.add(i)
            used_records.add(j)
            report.matches.append(
                ProductMatch(
                    product=left[i].item,
                    record=right[j].item,
                    score=score,
                    signals=signals,
                )
            )

        logger.info(
            f"Matched {len(report.matches)}/{report.products_evaluated} products "
            f"against {report.records_evaluated} records "
            f"(threshold={self.threshold}, skipped={report.skipped})"
        )
        return report
