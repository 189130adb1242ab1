"""
Declarative rule table shared by the product matcher and the compliance engine.

Every keyword list the storefront uses to recognise brands and regulated
products lives here:

- BRAND_VOCABULARY: brand name -> regex patterns (product matcher)
- KEYWORD_RULES: keyword rules with category, action and priority
  (compliance rule engine, background classifier)
- DEFAULT_COMPLIANCE_RULES: per-category regulation profiles seeded into
  the compliance_rules table
- PACT_ACT_RESTRICTED_STATES: states refusing mailed nicotine/tobacco
"""

from dataclasses import dataclass, field
from typing import Dict, List, Optional, Tuple


# Brand name -> patterns matched against the upper-cased product name
BRAND_VOCABULARY: Dict[str, Tuple[str, ...]] = {
    "ROOR": (r"\bROOR\b",),
    "RAW": (r"\bRAW\b",),
    "GRAV": (r"\bGRAV\b",),
    "PUFFCO": (r"\bPUFFCO\b",),
    "STORZ": (r"\bSTORZ\b", r"\bSTORZ\s*&\s*BICKEL\b"),
    "EMPIRE": (r"\bEMPIRE\b", r"\bEMPIRE\s+GLASSWORKS\b"),
    "CRAVE": (r"\bCRAVE\b",),
    "HIGHER": (r"\bHIGHER\b", r"\bHIGHER\s+STANDARDS\b"),
    "GLASS CITY": (r"\bGLASS\s+CITY\b",),
    "DANK STOP": (r"\bDANK\s+STOP\b",),
}

# Model/reference patterns tried in order, first hit wins
MODEL_PATTERNS: Tuple[str, ...] = (
    r"\bREF:\s*([A-Z0-9\-\s]+)",
    r"\bMODEL:\s*([A-Z0-9\-\s]+)",
    r"\b([A-Z]{1,3}\s*\d{2,4}[A-Z]?)\b",
    r"\b(\d{2,4}[A-Z]{1,3})\b",
)

# Size patterns, the captured number is joined with the unit
SIZE_PATTERNS: Tuple[Tuple[str, str], ...] = (
    (r"(\d+(?:\.\d+)?)\s*(?:INCH|IN\b|\")", "IN"),
    (r"(\d+(?:\.\d+)?)\s*MM\b", "MM"),
    (r"(\d+(?:\.\d+)?)\s*CM\b", "CM"),
)

# Words ignored when building the keyword set of a product name
MATCH_STOP_WORDS = frozenset({
    "THE", "A", "AN", "AND", "OR", "BUT", "IN", "ON", "AT", "TO", "FOR", "OF",
    "WITH", "BY", "PIPE", "WATER", "GLASS",
})

MAX_MATCH_KEYWORDS = 10


class RuleAction:
    HIDE = "hide"
    RESTRICT = "restrict"
    FLAG = "flag"
    REQUIRE_VERIFICATION = "require_verification"

    HIDING = frozenset({HIDE, RESTRICT})


@dataclass(frozen=True)
class KeywordRule:
    """Keyword rule evaluated by the rule-based classifier."""

    id: str
    name: str
    keywords: Tuple[str, ...]
    category: str
    action: str
    priority: int
    # compliance_rules.category this rule maps to, if any
    compliance_category: Optional[str] = None


KEYWORD_RULES: Tuple[KeywordRule, ...] = (
    KeywordRule(
        id="nicotine_obvious",
        name="Obvious Nicotine Products",
        keywords=("nicotine", "nic pouch", "nic salt", "zyn", "velo", "rogue", "on!", "pouches"),
        category="nicotine",
        action=RuleAction.HIDE,
        priority=100,
        compliance_category="Nicotine",
    ),
    KeywordRule(
        id="tobacco_obvious",
        name="Obvious Tobacco Products",
        keywords=("tobacco", "cigarette", "cigar", "pipe tobacco", "chewing tobacco", "snuff"),
        category="tobacco",
        action=RuleAction.HIDE,
        priority=100,
        compliance_category="Nicotine",
    ),
    KeywordRule(
        id="vaping_devices",
        name="Vaping Devices",
        keywords=("e-cigarette", "e-cig", "vape pen", "mod", "tank", "coil", "cartridge"),
        category="nicotine",
        action=RuleAction.RESTRICT,
        priority=90,
        compliance_category="Nicotine",
    ),
    KeywordRule(
        id="thca_products",
        name="THCA Products",
        keywords=("thca", "thc-a", "delta-9 thca", "hemp flower", "pre-roll"),
        category="thca",
        action=RuleAction.REQUIRE_VERIFICATION,
        priority=95,
        compliance_category="THCA",
    ),
    KeywordRule(
        id="kratom_products",
        name="Kratom Products",
        keywords=("kratom", "mitragyna", "bali", "maeng da", "red vein", "white vein", "green vein"),
        category="kratom",
        action=RuleAction.RESTRICT,
        priority=85,
        compliance_category="Kratom",
    ),
    KeywordRule(
        id="seven_hydroxy_products",
        name="7-Hydroxy Products",
        keywords=("7-hydroxy", "7-oh", "7 hydroxy", "7-hydroxymitragynine"),
        category="7-hydroxy",
        action=RuleAction.RESTRICT,
        priority=95,
        compliance_category="7-Hydroxy",
    ),
    KeywordRule(
        id="cbd_products",
        name="CBD Products",
        keywords=("cbd", "cannabidiol", "hemp oil", "hemp extract"),
        category="cbd",
        action=RuleAction.FLAG,
        priority=50,
    ),
)


@dataclass(frozen=True)
class ComplianceProfile:
    """Regulation profile seeded into the compliance_rules table."""

    category: str
    substance_type: str
    restricted_states: Tuple[str, ...]
    age_requirement: int
    lab_testing_required: bool
    batch_tracking_required: bool
    warning_labels: Tuple[str, ...]
    shipping_restrictions: Dict = field(default_factory=dict)

    def as_model_fields(self) -> Dict:
        return {
            "substance_type": self.substance_type,
            "restricted_states": list(self.restricted_states),
            "age_requirement": self.age_requirement,
            "lab_testing_required": self.lab_testing_required,
            "batch_tracking_required": self.batch_tracking_required,
            "warning_labels": list(self.warning_labels),
            "shipping_restrictions": dict(self.shipping_restrictions),
            "is_active": True,
        }


FDA_NOT_EVALUATED = "This product has not been evaluated by the FDA"
KEEP_AWAY_FROM_CHILDREN = "Keep out of reach of children and pets"

DEFAULT_COMPLIANCE_RULES: Tuple[ComplianceProfile, ...] = (
    ComplianceProfile(
        category="THCA",
        substance_type="Delta-9 THC Precursor",
        restricted_states=("ID", "KS", "NE", "NC", "SC", "TN", "TX", "UT", "WY"),
        age_requirement=21,
        lab_testing_required=True,
        batch_tracking_required=True,
        warning_labels=(
            FDA_NOT_EVALUATED,
            "This product may convert to Delta-9 THC when heated",
            KEEP_AWAY_FROM_CHILDREN,
            "Do not drive or operate machinery after use",
            "For adult use only (21+)",
        ),
        shipping_restrictions={
            "adult_signature_required": True,
            "no_international": True,
            "carrier_restrictions": ["FedEx", "UPS"],
            "max_quantity_per_order": 10,
        },
    ),
    ComplianceProfile(
        category="Kratom",
        substance_type="Mitragyna speciosa",
        restricted_states=("AL", "AR", "IN", "RI", "VT", "WI"),
        age_requirement=18,
        lab_testing_required=True,
        batch_tracking_required=True,
        warning_labels=(
            FDA_NOT_EVALUATED,
            "Not for human consumption",
            KEEP_AWAY_FROM_CHILDREN,
            "Consult your physician before use",
            "May cause drowsiness",
        ),
        shipping_restrictions={
            "adult_signature_required": True,
            "no_international": True,
            "max_quantity_per_order": 50,
        },
    ),
    ComplianceProfile(
        category="7-Hydroxy",
        substance_type="7-Hydroxymitragynine",
        restricted_states=("AL", "AR", "IN", "RI", "VT", "WI", "TN"),
        age_requirement=21,
        lab_testing_required=True,
        batch_tracking_required=True,
        warning_labels=(
            FDA_NOT_EVALUATED,
            "Extremely potent - use with caution",
            "Not for human consumption",
            KEEP_AWAY_FROM_CHILDREN,
            "For research purposes only",
        ),
        shipping_restrictions={
            "adult_signature_required": True,
            "no_international": True,
            "max_quantity_per_order": 5,
            "special_handling": True,
        },
    ),
    ComplianceProfile(
        category="Nicotine",
        substance_type="Tobacco/Nicotine Products",
        restricted_states=(),
        age_requirement=21,
        lab_testing_required=False,
        batch_tracking_required=False,
        warning_labels=(
            "WARNING: This product contains nicotine",
            "Nicotine is an addictive chemical",
            KEEP_AWAY_FROM_CHILDREN,
            "For adult use only (21+)",
        ),
        shipping_restrictions={
            "adult_signature_required": True,
            "no_international": True,
        },
    ),
)

# PACT Act: states that refuse mailed delivery of nicotine and tobacco
PACT_ACT_RESTRICTED_STATES = frozenset({"UT", "AL", "AK", "CT", "HI", "ME", "NY", "VT", "WA"})

# Categories the LLM classifier may return
AI_CATEGORIES: Tuple[str, ...] = ("THCA", "Kratom", "7-Hydroxy", "Nicotine", "Other")


def get_compliance_profile(category: str) -> Optional[ComplianceProfile]:
    for profile in DEFAULT_COMPLIANCE_RULES:
        if profile.category.lower() == category.lower():
            return profile
    return None


def keyword_rules_for_category(category: str) -> List[KeywordRule]:
    return [rule for rule in KEYWORD_RULES if rule.category == category]
