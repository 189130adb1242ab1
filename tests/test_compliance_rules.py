"""
Tests for the keyword rule engine.

The engine is pure: no database, no network, same input same analysis.
"""

import pytest

from storefront.services.compliance_rules import ComplianceRuleEngine
from storefront.services.rule_table import KEYWORD_RULES, KeywordRule, RuleAction


@pytest.fixture
def engine():
    return ComplianceRuleEngine()


class TestRuleAnalysis:
    """Tests for ComplianceRuleEngine.analyze()."""

    def test_obvious_nicotine_product_is_hidden(self, engine):
        analysis = engine.analyze("ZYN Cool Mint Nicotine Pouches 6mg")

        assert analysis.should_hide is True
        assert analysis.category == "nicotine"
        assert analysis.compliance_category == "Nicotine"
        assert analysis.highest_priority_action == RuleAction.HIDE
        assert analysis.triggered_rules == ["nicotine_obvious"]
        assert analysis.confidence == 1.0

    def test_thca_requires_verification_but_is_not_hidden(self, engine):
        analysis = engine.analyze("THCA Hemp Flower - Gelato 3.5g")

        assert analysis.should_hide is False
        assert analysis.category == "thca"
        assert analysis.highest_priority_action == RuleAction.REQUIRE_VERIFICATION
        assert analysis.confidence == pytest.approx(0.95)

    def test_kratom_is_restricted(self, engine):
        analysis = engine.analyze("Red Vein Bali Kratom Powder 250g")

        assert analysis.should_hide is True
        assert analysis.category == "kratom"
        assert analysis.compliance_category == "Kratom"
        assert analysis.confidence == pytest.approx(0.85)

    def test_seven_hydroxy_is_restricted(self, engine):
        analysis = engine.analyze("7-OH Tablets", "Contains 7-hydroxymitragynine")

        assert analysis.should_hide is True
        assert analysis.category == "7-hydroxy"
        assert analysis.compliance_category == "7-Hydroxy"

    def test_confidence_is_mean_priority_of_triggered_rules(self, engine):
        # nicotine_obvious (100) + vaping_devices (90)
        analysis = engine.analyze("Nicotine vape pen starter kit")

        assert analysis.triggered_rules == ["nicotine_obvious", "vaping_devices"]
        assert analysis.confidence == pytest.approx(0.95)
        assert analysis.category == "nicotine"

    def test_description_is_analysed(self, engine):
        analysis = engine.analyze("Cool Mint 6mg", "Tobacco-free nicotine pouches")

        assert analysis.should_hide is True
        assert "nicotine_obvious" in analysis.triggered_rules

    def test_cbd_is_flagged_only(self, engine):
        analysis = engine.analyze("Full Spectrum CBD Tincture 1000mg")

        assert analysis.should_hide is False
        assert analysis.highest_priority_action == RuleAction.FLAG
        assert analysis.compliance_category is None

    def test_clean_product_triggers_nothing(self, engine):
        analysis = engine.analyze("ROOR 18mm Beaker Bong", "Hand blown borosilicate glass")

        assert analysis.triggered is False
        assert analysis.should_hide is False
        assert analysis.category is None
        assert analysis.confidence == 0.0

    def test_keywords_match_whole_terms_only(self, engine):
        # "mod" must not fire inside "Modular", "cigar" not inside "cigarette"
        assert engine.analyze("Modular Grinder 4-piece").triggered is False

        analysis = engine.analyze("Cigarette rolling papers")
        assert analysis.triggered_rules == ["tobacco_obvious"]

    def test_punctuated_keyword_matches(self, engine):
        analysis = engine.analyze("on! Citrus 4mg")

        assert analysis.triggered_rules == ["nicotine_obvious"]

    def test_analysis_is_case_insensitive(self, engine):
        upper = engine.analyze("KRATOM MAENG DA")
        lower = engine.analyze("kratom maeng da")

        assert upper.to_dict() == lower.to_dict()

    def test_should_hide_product_shortcut(self, engine):
        assert engine.should_hide_product("Snuff tin") is True
        assert engine.should_hide_product("Silicone ashtray") is False


class TestRuleManagement:
    """Tests for rule ordering and stats."""

    def test_rules_sorted_by_priority(self, engine):
        priorities = [rule.priority for rule in engine.rules]

        assert priorities == sorted(priorities, reverse=True)
        assert len(engine.rules) == len(KEYWORD_RULES)

    def test_add_rule_replaces_rule_with_same_id(self, engine):
        engine.add_rule(KeywordRule(
            id="cbd_products",
            name="CBD Products",
            keywords=("cbd",),
            category="cbd",
            action=RuleAction.HIDE,
            priority=120,
        ))

        assert len(engine.rules) == len(KEYWORD_RULES)
        assert engine.rules[0].id == "cbd_products"
        assert engine.should_hide_product("CBD gummies") is True

    def test_custom_rule_set(self):
        engine = ComplianceRuleEngine(rules=[
            KeywordRule(
                id="torch",
                name="Butane torches",
                keywords=("butane",),
                category="hazmat",
                action=RuleAction.RESTRICT,
                priority=60,
            ),
        ])

        analysis = engine.analyze("Butane refill 300ml")
        assert analysis.category == "hazmat"
        assert analysis.confidence == pytest.approx(0.6)
        assert engine.analyze("Nicotine pouches").triggered is False

    def test_rule_stats(self, engine):
        stats = engine.rule_stats()

        assert stats["total_rules"] == 7
        assert stats["by_category"]["nicotine"] == 2
        assert stats["by_action"][RuleAction.RESTRICT] == 3
        assert stats["by_action"][RuleAction.HIDE] == 2

    def test_rules_by_category(self, engine):
        ids = [rule.id for rule in engine.rules_by_category("nicotine")]

        assert ids == ["nicotine_obvious", "vaping_devices"]
