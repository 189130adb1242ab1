"""
LLM product classifier.

Asks the chat model to place a product in the regulated categories
(THCA, Kratom, 7-Hydroxy, Nicotine, Other), validates the JSON it returns,
then links the matching compliance rules and updates the product's
nicotine / lab-test flags.

Visibility (hiding a product) is decided by the background classifier,
not here.
"""

import logging
from dataclasses import dataclass
from typing import Any, Dict, List, Optional

from storefront.models import Product
from storefront.services.compliance_service import get_compliance_service
from storefront.services.openai_client import OpenAIClient, get_openai_client
from storefront.services.rule_table import AI_CATEGORIES

logger = logging.getLogger(__name__)


NICOTINE_HIDDEN_REASON = "Nicotine products restricted to tobacco site"

SYSTEM_PROMPT = f"""You are a compliance-classification agent for VIP Smoke.
Return JSON matching this schema:

{{
  "categories": ["THCA" | "Kratom" | "7-Hydroxy" | "Nicotine" | "Other"...],
  "nicotineProduct": boolean,
  "requiresLabTest": boolean,
  "hiddenReason": string?    // if product must be hidden on main site
}}

Rules:
- Any cannabinoid (delta-8, delta-9, THCA, THCP) => category THCA, requiresLabTest true.
- "Kratom" or "Mitragyna" => Kratom.
- "7-Hydroxy" => 7-Hydroxy.
- "Nicotine", "Tobacco", "Cigar", "Vape" => Nicotine, nicotineProduct true, hiddenReason "{NICOTINE_HIDDEN_REASON}".
Respond ONLY with JSON."""


class ClassificationParseError(ValueError):
    """The model's JSON did not match the classification schema."""


@dataclass(frozen=True)
class AIClassification:
    categories: tuple
    nicotine_product: bool
    requires_lab_test: bool
    hidden_reason: Optional[str] = None

    @property
    def regulated_categories(self) -> List[str]:
        return [c for c in self.categories if c != "Other"]

    @classmethod
    def from_payload(cls, data: Any) -> "AIClassification":
        """
        Validate a model response.

        Raises:
            ClassificationParseError: If a field is missing or has the wrong type
        """
        if not isinstance(data, dict):
            raise ClassificationParseError("Classification must be a JSON object")

        categories = data.get("categories")
        if not isinstance(categories, list):
            raise ClassificationParseError("'categories' must be a list")
        unknown = [c for c in categories if c not in AI_CATEGORIES]
        if unknown:
            raise ClassificationParseError(f"Unknown categories: {unknown}")

        for key in ("nicotineProduct", "requiresLabTest"):
            if not isinstance(data.get(key), bool):
                raise ClassificationParseError(f"'{key}' must be a boolean")

        hidden_reason = data.get("hiddenReason")
        if hidden_reason is not None and not isinstance(hidden_reason, str):
            raise ClassificationParseError("'hiddenReason' must be a string")

        return cls(
            categories=tuple(dict.fromkeys(categories)),
            nicotine_product=data["nicotineProduct"],
            requires_lab_test=data["requiresLabTest"],
            hidden_reason=hidden_reason or None,
        )

    def to_dict(self) -> Dict:
        return {
            "categories": list(self.categories),
            "nicotine_product": self.nicotine_product,
            "requires_lab_test": self.requires_lab_test,
            "hidden_reason": self.hidden_reason,
        }


@dataclass
class ClassificationResult:
    success: bool
    classification: Optional[AIClassification] = None
    error: Optional[str] = None


def build_messages(name: str, description: str) -> List[Dict[str, str]]:
    return [
        {"role": "system", "content": SYSTEM_PROMPT},
        {
            "role": "user",
            "content": f"TITLE: {name}\nDESCRIPTION: {description or 'No description'}",
        },
    ]


def apply_classification(product: Product, classification: AIClassification) -> List[str]:
    """
    Link compliance rules and update product flags from a classification.

    Returns:
        Compliance categories linked to the product
    """
    service = get_compliance_service()
    linked = []
    for category in classification.regulated_categories:
        service.assign_compliance_to_product(product.id, category, assigned_by="ai_classifier")
        linked.append(category)

    product.nicotine_product = classification.nicotine_product
    product.requires_lab_test = classification.requires_lab_test
    product.save(update_fields=["nicotine_product", "requires_lab_test"])
    return linked


class AIProductClassifier:
    """Classifies products with the chat model."""

    def __init__(self, client: Optional[OpenAIClient] = None):
        self.client = client or get_openai_client()

    async def classify(self, name: str, description: str = "") -> ClassificationResult:
        """Classify a product by name and description. Never raises on model errors."""
        result = await self.client.chat_json(build_messages(name, description))
        if not result.success:
            return ClassificationResult(success=False, error=result.error)

        try:
            classification = AIClassification.from_payload(result.data)
        except ClassificationParseError as e:
            logger.warning(f"Invalid classification for '{name}': {e}")
            return ClassificationResult(success=False, error=str(e))

        logger.info(f"AI classification for '{name}': {classification.to_dict()}")
        return ClassificationResult(success=True, classification=classification)
