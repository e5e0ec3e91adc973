"""
Deterministic normalization of cache key components.

Two requests for "Google Inc." / "Senior Software Engineer II" and
"google" / "Software Engineer" must land on the same discovery cache entry,
so both the company name and the role title are reduced to a canonical form
before a key is built.
"""

import re
from typing import List, Tuple

# Legal-entity suffixes stripped from the end of a company name
COMPANY_SUFFIXES = [
    "inc.",
    "inc",
    "corporation",
    "corp.",
    "corp",
    "llc",
    "l.l.c.",
    "ltd.",
    "ltd",
    "limited",
    "co.",
    "company",
    "plc",
    "sa",
    "s.a.",
    "gmbh",
    "ag",
]

_SUFFIX_RE = re.compile(
    r"\s+(?:" + "|".join(re.escape(s) for s in COMPANY_SUFFIXES) + r")$"
)

# Ordered: the first family with a matching keyword wins. Data science is
# checked before software engineering so "machine learning engineer" is not
# swallowed by the generic "engineer" keyword.
ROLE_FAMILY_KEYWORDS: List[Tuple[str, List[str]]] = [
    (
        "data_science",
        [
            "data scientist",
            "data science",
            "machine learning",
            "ml engineer",
            "ai engineer",
            "research scientist",
        ],
    ),
    (
        "software_engineering",
        [
            "software engineer",
            "software developer",
            "sde",
            "swe",
            "backend",
            "frontend",
            "full stack",
            "fullstack",
            "full-stack",
            "engineer",
            "developer",
            "programmer",
        ],
    ),
    (
        "product_management",
        ["product manager", "product management", "pm", "tpm", "technical program"],
    ),
    (
        "design",
        ["designer", "ux", "ui", "user experience", "user interface", "product design"],
    ),
    ("qa_engineering", ["qa", "quality assurance", "test engineer", "sdet", "automation"]),
    ("devops_sre", ["devops", "sre", "site reliability", "infrastructure", "platform engineer"]),
    (
        "sales_business",
        ["sales", "account executive", "account manager", "business development"],
    ),
    ("marketing", ["marketing", "growth", "content", "brand"]),
]

DEFAULT_ROLE_FAMILY = "general"

_SENIORITY = r"(?:senior|sr\.?|staff|principal|lead|junior|jr\.?|associate|assistant|chief)"
_SENIORITY_PREFIX_RE = re.compile(rf"^(?:{_SENIORITY}\s+)+")
_SENIORITY_INFIX_RE = re.compile(rf"\s+{_SENIORITY}\s+")
_LEVEL_PREFIX_RE = re.compile(r"^(?:l\d+|ic\d+|t\d+)\s+")
_LEVEL_SUFFIX_RE = re.compile(r"\s+(?:l\d+|ic\d+|level\s+\d+|t\d+)\s*$")
_ROMAN_SUFFIX_RE = re.compile(r"\s+(?:i{1,3}|iv|v|vi)\s*$")
_LEVEL_ANYWHERE_RE = re.compile(r"\blevel\s+\d+\b")
_TRAILING_NUMBER_RE = re.compile(r"\s*\d+\s*$")

# Keywords must start at a word boundary but may be inflected ("engineering", "managers")
_KEYWORD_PATTERNS = [
    (family, [re.compile(rf"(?<![a-z0-9]){re.escape(kw)}") for kw in keywords])
    for family, keywords in ROLE_FAMILY_KEYWORDS
]


def normalize_company_name(company: str) -> str:
    """
    Canonical company name for cache keys.

    Examples:
        "Google Inc."           -> "google"
        "Apple, Inc"            -> "apple"
        "Microsoft Corporation" -> "microsoft"
        "AT&T"                  -> "att"

    Suffixes are stripped until none remain, so the result is a fixed point:
    normalizing it again returns it unchanged.
    """
    text = (company or "").lower().replace(",", " ")
    text = re.sub(r"[^a-z0-9\s.]", "", text)
    text = re.sub(r"\s+", " ", text).strip()

    while True:
        stripped = _SUFFIX_RE.sub("", text).strip()
        if stripped == text:
            return text
        text = stripped


def clean_role_title(role: str) -> str:
    """Lowercase a role title and drop seniority words and level markers."""
    text = re.sub(r"\s+", " ", (role or "").lower()).strip()

    text = _SENIORITY_PREFIX_RE.sub("", text)
    text = _SENIORITY_INFIX_RE.sub(" ", text)

    text = _LEVEL_PREFIX_RE.sub("", text)
    text = _LEVEL_SUFFIX_RE.sub("", text)
    text = _ROMAN_SUFFIX_RE.sub("", text)
    text = _LEVEL_ANYWHERE_RE.sub("", text)
    text = _TRAILING_NUMBER_RE.sub("", text)

    return re.sub(r"\s+", " ", text).strip()


def match_role_family(cleaned_role: str) -> str | None:
    for family, patterns in _KEYWORD_PATTERNS:
        if any(p.search(cleaned_role) for p in patterns):
            return family
    return None


def extract_role_family(role: str) -> str:
    """
    Map a role title onto a role family used in cache keys.

    Examples:
        "Senior Machine Learning Engineer" -> "data_science"
        "Senior Software Engineer II"      -> "software_engineering"
        "Senior Tax Analyst II"            -> "general"
    """
    if role in {family for family, _ in ROLE_FAMILY_KEYWORDS}:
        return role
    return match_role_family(clean_role_title(role)) or DEFAULT_ROLE_FAMILY


def role_search_term(role: str) -> str:
    """Role label for search queries: the family when known, else the cleaned title."""
    cleaned = clean_role_title(role)
    family = match_role_family(cleaned)
    if family:
        return family.replace("_", " ")
    return cleaned or "professional"


def cache_key_parts(company: str, role: str) -> Tuple[str, str]:
    """Normalized (company, role family) pair identifying a cache entry."""
    return normalize_company_name(company), extract_role_family(role)
