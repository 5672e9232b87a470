"""Content classification rules.

Everything here is a pure function over already-extracted fields. The rules are
data tables so each one can be tested, added or reordered on its own:
- content type: ordered (path fragments -> label) table, first match wins
- audience: independent (pattern -> label) tests accumulated into a set
- strategic topics: per-category phrase lists, literal substring containment
"""

from __future__ import annotations

from dataclasses import dataclass
import re
from typing import Dict, Iterable, List, Optional, Pattern, Sequence, Tuple


DEFAULT_CONTENT_TYPE = "other"
GENERAL_AUDIENCE = "general"


# -----------------------------
# Content type
# -----------------------------
ORGANIZATIONAL_TYPE = "for-organizations"
REPORT_GUIDE_TYPE = "report-guide"

CONTENT_TYPE_RULES: Tuple[Tuple[Tuple[str, ...], str], ...] = (
    (("/articles/",), "article"),
    (("/case-studies/",), "case-study"),
    (("/press-releases/",), "press-release"),
    (("/glossary/",), "glossary"),
    (("/support/",), "support"),
    (("/webinars/", "-webinar/"), "webinar"),
    (("/whitepapers/",), REPORT_GUIDE_TYPE),
    (("/testimonials/",), "testimonial"),
    (("/for-organizations/",), ORGANIZATIONAL_TYPE),
    (("/acquisition/",), "acquisition"),
    (("/for-individuals/",), "for-individuals"),
)

REPORT_GUIDE_KEYWORDS = ("report", "state of", "whitepaper", "ebook", "guide", "study")


def content_type_from_url(url: str) -> str:
    """URL-only pass over the rule table (no title refinement)."""
    u = url or ""
    for fragments, label in CONTENT_TYPE_RULES:
        if any(f in u for f in fragments):
            return label
    return DEFAULT_CONTENT_TYPE


def is_report_or_guide(title: Optional[str], url: Optional[str] = None) -> bool:
    t = (title or "").lower()
    u = (url or "").lower()
    return any(k in t or k in u for k in REPORT_GUIDE_KEYWORDS)


def classify_content_type(url: str, title: Optional[str] = None) -> str:
    label = content_type_from_url(url)
    if label == ORGANIZATIONAL_TYPE:
        return REPORT_GUIDE_TYPE if is_report_or_guide(title, url) else DEFAULT_CONTENT_TYPE
    return label


# -----------------------------
# Audience
# -----------------------------
@dataclass(frozen=True)
class AudienceRule:
    label: str
    pattern: Pattern[str]
    url_fragments: Tuple[str, ...] = ()
    content_types: Tuple[str, ...] = ()

    def matches(self, text: str, url: str, content_type: Optional[str]) -> bool:
        if self.pattern.search(text):
            return True
        if any(f in url for f in self.url_fragments):
            return True
        return bool(content_type) and content_type in self.content_types


HEALTH_PLANS = "health plans"
EMPLOYERS = "employers"
PROVIDERS = "providers"
MEMBERS = "members"
PARTNERS = "partners"

AUDIENCE_ORDER = (HEALTH_PLANS, EMPLOYERS, PROVIDERS, MEMBERS, PARTNERS, GENERAL_AUDIENCE)

AUDIENCE_RULES: Tuple[AudienceRule, ...] = (
    AudienceRule(
        label=HEALTH_PLANS,
        pattern=re.compile(
            r"\b(health plan|payer|insurance|cigna|aetna|anthem|humana|united healthcare|bcbs|blue cross"
            r"|value.based care|population health|medical spend|health system|healthcare system"
            r"|integrated care|care coordination)"
        ),
        url_fragments=("/health-plans", "/payers"),
    ),
    AudienceRule(
        label=EMPLOYERS,
        pattern=re.compile(
            r"\b(employer|workplace|hr\b|benefits? leader|cost saving|reduces cost|roi\b"
            r"|return on investment|total cost|claims|absenteeism"
            r"|employee (engagement|well.?being|wellness|health program)|workforce|total rewards"
            r"|beloved benefit|employee.focused|lower cost.*productivity|engagement.*cost)"
        ),
        url_fragments=("/employers",),
    ),
    AudienceRule(
        label=PROVIDERS,
        pattern=re.compile(
            r"(for providers|for clinicians|provider network|provider portal|clinical guidelines"
            r"|join our team|provider resources|provider integration|hingeselect|provider benefit"
            r"|providers benefit|for physical therapist|clinician dashboard)"
        ),
        url_fragments=("/for-providers",),
    ),
    AudienceRule(
        label=MEMBERS,
        pattern=re.compile(
            r"(how to|your (care|treatment|exercises|sleep|pain|body|health|knee|back|shoulder|hip|neck)"
            r"|message your|use the app|exercises for|symptoms? of|symptom|treatment for|living with"
            r"|managing (your|headache|pain)|self-care|pain relief|member|patient|individual"
            r"|patient guide|for you|download.{0,10}app|definition and what it is|enso|kegel|pelvic"
            r"|pain relief device|improving your|managing your|sleep position|pain cycle|bladder habit"
            r"|breathing exercise|mindfulness|yoga|stretching|warm.up|nutrition|veggie|walking program"
            r"|lifting|pregnancy|caregiver|tired of pain|breaking the|food for|tips for|ways to"
            r"|strategies for your|rethink your pain|chronic pain|belly band|incontinence|water intake"
            r"|stairs and|tennis player|fall leaves|beginner|full.body|resistance|portion|daily walking"
            r"|diagnosis|diagnose|condition|injury|ache|aching|sore|arthritis|sciatica|tendonitis"
            r"|fracture|sprain|strain|inflammation|therapy for|relief for|cope with|deal with)"
        ),
        url_fragments=("/members", "/for-individuals"),
        content_types=("support", "glossary", "for-individuals"),
    ),
    AudienceRule(
        label=PARTNERS,
        pattern=re.compile(
            r"\b(announces partnership|partner program|technology partner|strategic alliance"
            r"|collaboration with|partnering with)"
        ),
        url_fragments=("/partners",),
    ),
)

DEFAULT_B2B_CONTENT_TYPES = ("case-study", "whitepaper", REPORT_GUIDE_TYPE)


def audience_text(title: str, description: str, categories: Iterable[str]) -> str:
    return " ".join([title or "", description or "", " ".join(categories or [])]).lower()


def classify_audience(
    *,
    title: str,
    description: str,
    categories: Sequence[str],
    url: str,
    content_type: Optional[str],
    b2b_content_types: Optional[Iterable[str]] = None,
    rules: Sequence[AudienceRule] = AUDIENCE_RULES,
) -> List[str]:
    """Return the (never empty) audience labels for a record, in AUDIENCE_ORDER."""
    text = audience_text(title, description, categories)
    url_l = (url or "").lower()
    found = {r.label for r in rules if r.matches(text, url_l, content_type)}

    # B2B fallback: case studies / reports with no explicit payer or employer signal
    b2b = set(b2b_content_types) if b2b_content_types is not None else set(DEFAULT_B2B_CONTENT_TYPES)
    if content_type in b2b and not found & {EMPLOYERS, HEALTH_PLANS}:
        found.add(EMPLOYERS)

    if not found:
        return [GENERAL_AUDIENCE]
    ordered = [a for a in AUDIENCE_ORDER if a in found]
    return ordered + sorted(found.difference(AUDIENCE_ORDER))


# -----------------------------
# Strategic topics
# -----------------------------
STRATEGIC_TOPICS: Dict[str, Tuple[str, ...]] = {
    "clinical": (
        "chronic pain", "back pain", "knee pain", "hip pain", "shoulder pain", "neck pain",
        "behavioral health", "mental health", "pelvic health", "pelvic floor",
        "arthritis", "sciatica", "tendonitis", "osteoarthritis",
        "physical therapy", "exercise therapy", "pain management", "pain relief",
        "musculoskeletal", "msk care", "fall prevention", "injury prevention",
    ),
    "business": (
        "employer", "employers", "cost savings", "roi", "return on investment",
        "member engagement", "employee engagement", "utilization", "outcomes",
        "claims", "medical claims", "healthcare costs", "total cost",
        "productivity", "absenteeism", "presenteeism", "disability",
        "benefits", "health plan", "wellness program",
    ),
    "technology": (
        "digital health", "digital msk", "telehealth", "telemedicine", "virtual",
        "ai", "artificial intelligence", "machine learning", "computer vision",
        "remote monitoring", "wearable", "sensor", "motion tracking",
        "app", "mobile", "platform", "technology", "enso", "truemotion",
    ),
    "market": (
        "msk", "value-based care", "population health",
        "clinical outcomes", "patient outcomes", "evidence-based",
        "research", "study", "clinical study", "white paper", "report",
        "partnership", "integration", "provider network",
    ),
}

TOPIC_CATEGORIES = tuple(STRATEGIC_TOPICS.keys())


def phrase_matches(phrase: str, text_lower: str, *, match_mode: str = "substring") -> bool:
    """Substring containment by default ("ai" matches inside "chair")."""
    if match_mode == "word":
        return re.search(r"(?<!\w)" + re.escape(phrase) + r"(?!\w)", text_lower) is not None
    return phrase in text_lower


def extract_strategic_topics(
    text: str,
    *,
    match_mode: str = "substring",
    topics: Optional[Dict[str, Sequence[str]]] = None,
) -> Dict[str, List[str]]:
    """Per category, the phrases present in `text` (case-insensitive), in table order."""
    table = topics if topics is not None else STRATEGIC_TOPICS
    text_lower = (text or "").lower()
    return {
        category: [p for p in phrases if phrase_matches(p.lower(), text_lower, match_mode=match_mode)]
        for category, phrases in table.items()
    }


def topic_text(title: str, description: str) -> str:
    return f"{title or ''} {description or ''}"
