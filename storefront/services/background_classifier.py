"""
Background classification pipeline.

Each queued product moves through:

    queued -> rule_checked -> hidden
                           -> ai_checked -> hidden | visible

1. The keyword rule engine runs first. A hiding rule at or above the
   confidence cutoff hides the product without calling the LLM.
2. Otherwise the LLM classifier runs. A Nicotine result hides the product
   when the nicotine auto-hide policy is on, or the tobacco policy when the
   top rule hit was a tobacco rule.
3. If the LLM call fails, the rule result decides: the product is hidden
   only if a hiding rule had triggered, however weakly.

The queue lives in memory inside one service instance per process
(created in StorefrontConfig.ready()) and is lost on restart. Products
are classified one at a time with a fixed delay between them.

Config overrides and the queue state are kept in the Django cache so the
web process (which updates config and reports stats) and the Celery worker
(which classifies) see the same values. The worker re-reads the overrides
before every drain.
"""

import asyncio
import dataclasses
import logging
from collections import deque
from dataclasses import dataclass, field
from typing import Awaitable, Callable, Deque, Dict, Iterable, List, Optional

from asgiref.sync import async_to_sync, sync_to_async
from django.conf import settings
from django.core.cache import cache
from django.utils import timezone

from storefront.models import ClassificationStatus, Product
from storefront.monitoring import log_error_with_context
from storefront.services.ai_classifier import (
    AIClassification,
    AIProductClassifier,
    apply_classification,
)
from storefront.services.compliance_rules import ComplianceRuleEngine, RuleAnalysis
from storefront.services.compliance_service import get_compliance_service

logger = logging.getLogger(__name__)


CONFIG_OVERRIDES_CACHE_KEY = "storefront:classifier:config"
QUEUE_STATE_CACHE_KEY = "storefront:classifier:state"

CATEGORY_LABELS = {
    "nicotine": "Nicotine",
    "tobacco": "Tobacco",
    "thca": "THCA",
    "kratom": "Kratom",
    "7-hydroxy": "7-Hydroxy",
    "cbd": "CBD",
}


def restricted_reason(category: str) -> str:
    label = CATEGORY_LABELS.get(category, category.title())
    return f"{label} product - restricted access"


@dataclass(frozen=True)
class ClassifierConfig:
    enabled: bool = True
    batch_size: int = 5
    delay_seconds: float = 2.0
    rule_confidence_cutoff: float = 0.7
    auto_hide_nicotine: bool = True
    auto_hide_tobacco: bool = True

    @classmethod
    def from_settings(cls) -> "ClassifierConfig":
        return cls(
            enabled=getattr(settings, "CLASSIFIER_ENABLED", True),
            batch_size=getattr(settings, "CLASSIFIER_BATCH_SIZE", 5),
            delay_seconds=getattr(settings, "CLASSIFIER_DELAY_SECONDS", 2.0),
            rule_confidence_cutoff=getattr(settings, "CLASSIFIER_RULE_CONFIDENCE_CUTOFF", 0.7),
            auto_hide_nicotine=getattr(settings, "CLASSIFIER_AUTO_HIDE_NICOTINE", True),
            auto_hide_tobacco=getattr(settings, "CLASSIFIER_AUTO_HIDE_TOBACCO", True),
        )

    def merged(self, changes: Dict) -> "ClassifierConfig":
        """
        Copy with ``changes`` applied.

        Raises:
            ValueError: On unknown keys or out-of-range values
        """
        known = {f.name for f in dataclasses.fields(self)}
        unknown = set(changes) - known
        if unknown:
            raise ValueError(f"Unknown classifier settings: {', '.join(sorted(unknown))}")
        config = dataclasses.replace(self, **changes)
        if config.batch_size < 1:
            raise ValueError("batch_size must be at least 1")
        if config.delay_seconds < 0:
            raise ValueError("delay_seconds cannot be negative")
        if not 0.0 <= config.rule_confidence_cutoff <= 1.0:
            raise ValueError("rule_confidence_cutoff must be between 0 and 1")
        return config

    def to_dict(self) -> Dict:
        return dataclasses.asdict(self)


@dataclass
class ClassificationOutcome:
    """What happened to one product in the pipeline."""

    product_id: str
    state: str = ClassificationStatus.QUEUED
    transitions: List[str] = field(default_factory=lambda: [ClassificationStatus.QUEUED])
    hidden: bool = False
    reason: str = ""
    rule_analysis: Optional[RuleAnalysis] = None
    ai_classification: Optional[AIClassification] = None
    error: Optional[str] = None

    def move_to(self, state: str) -> None:
        self.state = state
        self.transitions.append(state)

    def to_dict(self) -> Dict:
        return {
            "product_id": self.product_id,
            "state": str(self.state),
            "transitions": [str(s) for s in self.transitions],
            "hidden": self.hidden,
            "reason": self.reason,
            "rule_analysis": self.rule_analysis.to_dict() if self.rule_analysis else None,
            "ai_classification": (
                self.ai_classification.to_dict() if self.ai_classification else None
            ),
            "error": self.error,
        }


class BackgroundClassificationService:
    """In-memory FIFO classification queue owned by one process."""

    def __init__(
        self,
        config: ClassifierConfig,
        rule_engine: ComplianceRuleEngine,
        ai_classifier: Optional[AIProductClassifier] = None,
        sleep: Callable[[float], Awaitable] = asyncio.sleep,
        store=None,
    ):
        self.config = config
        self.rule_engine = rule_engine
        self._base_config = config
        self._ai_classifier = ai_classifier
        self._sleep = sleep
        self._store = store if store is not None else cache
        self._queue: Deque[str] = deque()
        self._processing = False

    @property
    def ai_classifier(self) -> AIProductClassifier:
        # Built lazily so startup never needs OpenAI settings
        if self._ai_classifier is None:
            self._ai_classifier = AIProductClassifier()
        return self._ai_classifier

    @property
    def queue_length(self) -> int:
        return len(self._queue)

    @property
    def processing(self) -> bool:
        return self._processing

    def refresh_config(self) -> ClassifierConfig:
        """Apply the shared overrides on top of the settings this service was built with."""
        overrides = self._store.get(CONFIG_OVERRIDES_CACHE_KEY) or {}
        try:
            self.config = self._base_config.merged(overrides)
        except ValueError as e:
            logger.warning(f"Ignoring invalid classifier overrides {overrides}: {e}")
            self.config = self._base_config
        return self.config

    def update_config(self, changes: Dict) -> ClassifierConfig:
        """
        Validate ``changes`` and share them with every process.

        Raises:
            ValueError: On unknown keys or out-of-range values
        """
        overrides = {**(self._store.get(CONFIG_OVERRIDES_CACHE_KEY) or {}), **changes}
        config = self._base_config.merged(overrides)
        self._store.set(CONFIG_OVERRIDES_CACHE_KEY, overrides, timeout=None)
        self.config = config
        logger.info(f"Classifier config updated: {self.config.to_dict()}")
        return self.config

    def _publish_state(self) -> None:
        self._store.set(
            QUEUE_STATE_CACHE_KEY,
            {"queue_length": len(self._queue), "processing": self._processing},
            timeout=None,
        )

    def enqueue(self, product_id) -> bool:
        """Queue a product unless it is already queued. Returns True if added."""
        if not self.config.enabled:
            return False
        product_id = str(product_id)
        if product_id in self._queue:
            return False
        self._queue.append(product_id)
        self._publish_state()
        logger.debug(f"Queued product {product_id} for classification")
        return True

    def enqueue_many(self, product_ids: Iterable) -> int:
        return sum(1 for product_id in product_ids if self.enqueue(product_id))

    async def drain(self) -> List[ClassificationOutcome]:
        """
        Classify everything in the queue, batch after batch.

        Returns immediately with no outcomes when a drain is already running.
        """
        if self._processing or not self._queue:
            return []

        config = await sync_to_async(self.refresh_config)()
        if not config.enabled:
            logger.info(f"Classification disabled, dropping {len(self._queue)} queued products")
            self._queue.clear()
            await sync_to_async(self._publish_state)()
            return []

        self._processing = True
        outcomes: List[ClassificationOutcome] = []
        logger.info(f"Starting background classification of {len(self._queue)} products")
        try:
            while self._queue:
                batch = [
                    self._queue.popleft()
                    for _ in range(min(self.config.batch_size, len(self._queue)))
                ]
                await sync_to_async(self._publish_state)()
                for product_id in batch:
                    try:
                        outcomes.append(await self.classify_product(product_id))
                    except Exception as e:
                        await sync_to_async(log_error_with_context)(
                            e, source="classifier", phase="classify", record_id=product_id
                        )
                        outcomes.append(
                            ClassificationOutcome(
                                product_id=product_id,
                                state=ClassificationStatus.FAILED,
                                error=str(e),
                            )
                        )
                    if self.config.delay_seconds > 0:
                        await self._sleep(self.config.delay_seconds)
        finally:
            self._processing = False
            await sync_to_async(self._publish_state)()

        hidden = sum(1 for o in outcomes if o.hidden)
        logger.info(f"Classification queue processed: {len(outcomes)} products, {hidden} hidden")
        return outcomes

    def process(self, product_ids: Iterable) -> List[ClassificationOutcome]:
        """Queue products and drain the queue from synchronous code."""
        self.refresh_config()
        self.enqueue_many(product_ids)
        return async_to_sync(self.drain)()

    def _hide_policy_allows(self, category: Optional[str]) -> bool:
        if category == "nicotine":
            return self.config.auto_hide_nicotine
        if category == "tobacco":
            return self.config.auto_hide_tobacco
        return True

    async def classify_product(self, product_id) -> ClassificationOutcome:
        """
        Run one product through the pipeline and persist the result.

        Raises:
            Product.DoesNotExist: If the product does not exist
        """
        product = await Product.objects.filter(pk=product_id).afirst()
        if product is None:
            raise Product.DoesNotExist(f"Product {product_id} not found")

        outcome = ClassificationOutcome(product_id=str(product.id))

        analysis = self.rule_engine.analyze(product.name, product.description)
        outcome.rule_analysis = analysis
        outcome.move_to(ClassificationStatus.RULE_CHECKED)

        if (
            analysis.should_hide
            and analysis.confidence >= self.config.rule_confidence_cutoff
            and self._hide_policy_allows(analysis.category)
        ):
            outcome.hidden = True
            outcome.reason = restricted_reason(analysis.category)
            outcome.move_to(ClassificationStatus.HIDDEN)
            await sync_to_async(self._persist)(product, outcome)
            logger.info(f"Rules hid {product.sku}: {outcome.reason} ({analysis.triggered_rules})")
            return outcome

        result = await self.ai_classifier.classify(product.name, product.description)

        if not result.success:
            outcome.error = result.error
            logger.warning(f"AI classification failed for {product.sku}: {result.error}")
            if analysis.should_hide and self._hide_policy_allows(analysis.category):
                outcome.hidden = True
                outcome.reason = restricted_reason(analysis.category)
                outcome.move_to(ClassificationStatus.HIDDEN)
            else:
                outcome.move_to(ClassificationStatus.FAILED)
            await sync_to_async(self._persist)(product, outcome)
            return outcome

        classification = result.classification
        outcome.ai_classification = classification
        outcome.move_to(ClassificationStatus.AI_CHECKED)

        if classification.nicotine_product:
            # The LLM folds tobacco into Nicotine; a tobacco rule hit tells them apart.
            kind = "tobacco" if analysis.category == "tobacco" else "nicotine"
            if self._hide_policy_allows(kind):
                outcome.hidden = True
                outcome.reason = restricted_reason(kind)

        outcome.move_to(
            ClassificationStatus.HIDDEN if outcome.hidden else ClassificationStatus.VISIBLE
        )
        await sync_to_async(self._persist)(product, outcome)
        logger.info(
            f"Classified {product.sku}: {', '.join(classification.categories) or 'none'} "
            f"({'HIDDEN' if outcome.hidden else 'VISIBLE'})"
        )
        return outcome

    def _persist(self, product: Product, outcome: ClassificationOutcome) -> None:
        update_fields = ["classification_status", "last_classified_at"]

        if outcome.ai_classification is not None:
            apply_classification(product, outcome.ai_classification)
            rule_category = outcome.rule_analysis.category if outcome.rule_analysis else None
            if outcome.ai_classification.nicotine_product and rule_category == "tobacco":
                product.tobacco_product = True
                update_fields.append("tobacco_product")
        elif outcome.hidden and outcome.rule_analysis and outcome.rule_analysis.compliance_category:
            get_compliance_service().assign_compliance_to_product(
                product.id, outcome.rule_analysis.compliance_category, assigned_by="rule_engine"
            )

        if outcome.hidden:
            product.visible_on_main_site = False
            product.hidden_reason = outcome.reason
            update_fields += ["visible_on_main_site", "hidden_reason"]
            category = outcome.rule_analysis.category if outcome.rule_analysis else None
            if outcome.ai_classification is None and category == "nicotine":
                product.nicotine_product = True
                update_fields.append("nicotine_product")
            if outcome.ai_classification is None and category == "tobacco":
                product.tobacco_product = True
                update_fields.append("tobacco_product")

        product.classification_status = outcome.state
        product.last_classified_at = timezone.now()
        product.save(update_fields=update_fields)

    def classify_all_products(self, limit: Optional[int] = None) -> int:
        """Queue active products that were never classified or failed last time."""
        if not self.refresh_config().enabled:
            return 0
        queryset = Product.objects.filter(
            is_active=True,
            classification_status__in=[
                ClassificationStatus.UNCLASSIFIED,
                ClassificationStatus.FAILED,
            ],
        ).order_by("created_at").values_list("id", flat=True)
        if limit:
            queryset = queryset[:limit]
        queued = self.enqueue_many(queryset)
        logger.info(f"Queued {queued} products for background classification")
        return queued

    def stats(self) -> Dict:
        """Queue state as last published by the classifying process, plus catalog counts."""
        config = self.refresh_config()
        state = self._store.get(QUEUE_STATE_CACHE_KEY) or {
            "queue_length": self.queue_length,
            "processing": self.processing,
        }
        total = Product.objects.count()
        hidden = Product.objects.filter(visible_on_main_site=False).count()
        return {
            "queue_length": state["queue_length"],
            "processing": state["processing"],
            "total_products": total,
            "active_products": total - hidden,
            "hidden_products": hidden,
            "config": config.to_dict(),
        }


_classification_service: Optional[BackgroundClassificationService] = None


def configure_classification_service(
    config: Optional[ClassifierConfig] = None,
    rule_engine: Optional[ComplianceRuleEngine] = None,
    ai_classifier: Optional[AIProductClassifier] = None,
) -> BackgroundClassificationService:
    """Build the process-wide service. Called once from StorefrontConfig.ready()."""
    global _classification_service
    _classification_service = BackgroundClassificationService(
        config=config or ClassifierConfig.from_settings(),
        rule_engine=rule_engine or ComplianceRuleEngine(),
        ai_classifier=ai_classifier,
    )
    return _classification_service


def get_classification_service() -> BackgroundClassificationService:
    if _classification_service is None:
        return configure_classification_service()
    return _classification_service
