"""Tests for discovery search query builders."""

from datetime import date

from curriculum.tools.query_builder import (
    build_company_news_query,
    build_competitor_query,
    build_interview_experience_query,
    news_sources_for,
)

TODAY = date(2026, 3, 1)


def test_competitor_query_uses_role_family_and_year_range():
    query = build_competitor_query("Netflix", "Senior Software Engineer II", TODAY)
    assert query == '"Netflix" top competitors software engineering 2025 OR 2026'


def test_competitor_query_disambiguates_short_names():
    assert build_competitor_query("ING", "Data Scientist", TODAY).startswith('"ING Bank" OR "ING Group"')


def test_experience_query_targets_review_sites():
    query = build_interview_experience_query("Netflix", "Senior Tax Analyst II", TODAY)
    assert '"tax analyst"' in query
    assert "site:glassdoor.com" in query


def test_news_sources_by_industry():
    assert "bloomberg.com" in news_sources_for("Goldman Sachs", "Analyst")
    assert "statnews.com" in news_sources_for("Pfizer", "Scientist")
    assert "techcrunch.com" in news_sources_for("Netflix", "Software Engineer")


def test_news_query():
    query = build_company_news_query("Netflix", "Software Engineer", TODAY)
    assert query.startswith('"Netflix"')
    assert query.endswith("2025 OR 2026")
