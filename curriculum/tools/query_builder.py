"""Search query builders for the three discovery topics."""

from datetime import date
from typing import Optional

from libs.caching.key_normalizer import role_search_term

# Short names that need industry context to search well
_DISAMBIGUATION = {
    "ing": '"ING Bank" OR "ING Group" Netherlands banking',
    "meta": '"Meta" OR "Facebook" tech',
    "alphabet": '"Alphabet" OR "Google"',
}

_FINANCE_COMPANIES = ("goldman", "jpmorgan", "morgan stanley")
_HEALTHCARE_COMPANIES = ("pfizer", "moderna")


def _year_range(today: Optional[date]) -> str:
    year = (today or date.today()).year
    return f"{year - 1} OR {year}"


def build_competitor_query(company: str, role: str, today: Optional[date] = None) -> str:
    company_term = _DISAMBIGUATION.get(company.strip().lower(), f'"{company}"')
    return " ".join([company_term, "top competitors", role_search_term(role), _year_range(today)])


def build_interview_experience_query(company: str, role: str, today: Optional[date] = None) -> str:
    return " ".join(
        [
            f'"{company}"',
            f'"{role_search_term(role)}"',
            "interview experience",
            "(site:glassdoor.com OR site:blind.com)",
            _year_range(today),
        ]
    )


def news_sources_for(company: str, role: str) -> str:
    company_lower = company.lower()
    role_lower = role.lower()

    if any(name in company_lower for name in _FINANCE_COMPANIES) or any(
        word in role_lower for word in ("financial", "banking")
    ):
        return "(site:bloomberg.com OR site:reuters.com OR site:wsj.com)"

    if any(name in company_lower for name in _HEALTHCARE_COMPANIES) or any(
        word in role_lower for word in ("clinical", "pharmaceutical")
    ):
        return "(site:fiercepharma.com OR site:reuters.com OR site:statnews.com)"

    return "(site:techcrunch.com OR site:theverge.com OR site:reuters.com)"


def build_company_news_query(company: str, role: str, today: Optional[date] = None) -> str:
    return " ".join(
        [
            f'"{company}"',
            "(launch OR funding OR acquisition OR announcement OR news)",
            news_sources_for(company, role),
            _year_range(today),
        ]
    )
