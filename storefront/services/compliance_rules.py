"""
Rule-based compliance classifier.

Pure keyword analysis of a product's name and description against the
keyword rules in ``rule_table``. No database or network access, so the
same input always yields the same analysis.
"""

import re
from dataclasses import dataclass, field
from typing import Dict, Iterable, List, Optional, Pattern, Tuple

from storefront.services.rule_table import KEYWORD_RULES, KeywordRule, RuleAction


@dataclass
class RuleAnalysis:
    """Result of analysing one product against the keyword rules."""

    should_hide: bool = False
    category: Optional[str] = None
    compliance_category: Optional[str] = None
    confidence: float = 0.0
    triggered_rules: List[str] = field(default_factory=list)
    highest_priority_action: Optional[str] = None

    @property
    def triggered(self) -> bool:
        return bool(self.triggered_rules)

    def to_dict(self) -> Dict:
        return {
            "should_hide": self.should_hide,
            "category": self.category,
            "compliance_category": self.compliance_category,
            "confidence": self.confidence,
            "triggered_rules": list(self.triggered_rules),
            "highest_priority_action": self.highest_priority_action,
        }


def _keyword_pattern(keyword: str) -> Pattern:
    # Alphanumeric boundaries so "on!" and "e-cig" still match as whole terms
    return re.compile(rf"(?<![a-z0-9]){re.escape(keyword.lower())}(?![a-z0-9])")


class ComplianceRuleEngine:
    """
    Keyword rule engine.

    Rules are kept sorted by priority (highest first); the highest
    priority triggered rule decides the category and action.
    """

    def __init__(self, rules: Optional[Iterable[KeywordRule]] = None):
        self._rules: List[KeywordRule] = []
        self._patterns: Dict[str, Tuple[Pattern, ...]] = {}
        for rule in rules if rules is not None else KEYWORD_RULES:
            self.add_rule(rule)

    @property
    def rules(self) -> List[KeywordRule]:
        return list(self._rules)

    def add_rule(self, rule: KeywordRule) -> None:
        """Add or replace a rule, keeping priority order."""
        self._rules = [r for r in self._rules if r.id != rule.id]
        self._rules.append(rule)
        self._rules.sort(key=lambda r: r.priority, reverse=True)
        self._patterns[rule.id] = tuple(_keyword_pattern(k) for k in rule.keywords)

    def _matches(self, rule: KeywordRule, text: str) -> bool:
        return any(p.search(text) for p in self._patterns[rule.id])

    def analyze(self, product_name: str, description: str = "") -> RuleAnalysis:
        """
        Analyse a product's name and description.

        Confidence is the mean priority of the triggered rules divided by
        100, capped at 1.0. ``should_hide`` is set when any triggered rule
        hides or restricts.
        """
        text = f"{product_name or ''} {description or ''}".lower()
        triggered = [rule for rule in self._rules if self._matches(rule, text)]

        if not triggered:
            return RuleAnalysis()

        top = triggered[0]
        mean_priority = sum(rule.priority for rule in triggered) / len(triggered)

        return RuleAnalysis(
            should_hide=any(rule.action in RuleAction.HIDING for rule in triggered),
            category=top.category,
            compliance_category=top.compliance_category,
            confidence=min(1.0, mean_priority / 100),
            triggered_rules=[rule.id for rule in triggered],
            highest_priority_action=top.action,
        )

    def should_hide_product(self, product_name: str, description: str = "") -> bool:
        return self.analyze(product_name, description).should_hide

    def rules_by_category(self, category: str) -> List[KeywordRule]:
        return [rule for rule in self._rules if rule.category == category]

    def rule_stats(self) -> Dict:
        by_category: Dict[str, int] = {}
        by_action: Dict[str, int] = {}
        for rule in self._rules:
            by_category[rule.category] = by_category.get(rule.category, 0) + 1
            by_action[rule.action] = by_action.get(rule.action, 0) + 1
        return {
            "total_rules": len(self._rules),
            "by_category": by_category,
            "by_action": by_action,
        }
