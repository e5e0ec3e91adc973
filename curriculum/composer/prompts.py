"""
Prompt templates for every generation task in a curriculum run.

Each task has a ChatPromptTemplate; stage handlers format it with
``TEMPLATE.format_messages(**context)`` and pass the messages to the
structured generation client. Literal braces in the text are doubled.
"""

from typing import Iterable, List, Sequence

from langchain_core.prompts import ChatPromptTemplate

from curriculum.schemas.research import Fact


# ==============================================================================
# SHARED
# ==============================================================================

COACH_SYSTEM_PROMPT = """You are an interview preparation coach building a five-round interview curriculum for one candidate.

Ground everything in the research you are given. Do not invent company facts, numbers or events.
Prefer specific, verifiable statements over generic advice.
Keep tone professional and encouraging."""


# ==============================================================================
# DISCOVERY
# ==============================================================================

ENTITY_EXTRACTION_TEMPLATE = ChatPromptTemplate.from_messages([
    ("system", "Extract the company name and the job title from the candidate's request. Use the company's common name."),
    ("user", "Request: {user_input}"),
])

SOURCE_SUGGESTION_TEMPLATE = ChatPromptTemplate.from_messages([
    ("system", "You find web pages that describe a company and a role. Suggest public URLs only: engineering blogs, press pages, news coverage, review sites."),
    ("user", "Company: {company}\nRole: {role}\nSuggest up to {max_sources} sources not already listed:\n{known_urls}"),
])

SOURCE_FETCH_TEMPLATE = ChatPromptTemplate.from_messages([
    ("system", "Summarize what the page says about the company, its culture, and the role. Say 'NO RELEVANT CONTENT' if the page has nothing useful."),
    ("user", "URL: {url}\nCompany: {company}\nRole: {role}"),
])


# ==============================================================================
# RESEARCH
# ==============================================================================

JOB_PARSING_TEMPLATE = ChatPromptTemplate.from_messages([
    ("system", "Parse the job posting into structured fields. If a field is not stated, leave it empty rather than guessing."),
    ("user", "Candidate request: {user_input}\n\nSource ({source_url}):\n{source_content}"),
])

COMPETITOR_SEARCH_TEMPLATE = ChatPromptTemplate.from_messages([
    ("system", COACH_SYSTEM_PROMPT),
    ("user", """Search for direct competitors of {company} that compete for {role} talent.
Include regional competitors, industry leaders and fast-growing challengers.
For each: name, website or careers URL, industry, size estimate, key differentiators.

Search query: {search_query}"""),
])

EXPERIENCE_SEARCH_TEMPLATE = ChatPromptTemplate.from_messages([
    ("system", COACH_SYSTEM_PROMPT),
    ("user", """Search for recent interview experiences for {role} roles at {company}.
For each: source URL, date, outcome, difficulty, the rounds described, preparation tips and key insights.

Search query: {search_query}"""),
])

NEWS_SEARCH_TEMPLATE = ChatPromptTemplate.from_messages([
    ("system", COACH_SYSTEM_PROMPT),
    ("user", """Search for recent news about {company} relevant to someone joining as {role}.
For each: headline, URL, one-line summary, date, publisher and sentiment.

Search query: {search_query}"""),
])

TOPIC_PARSE_TEMPLATE = ChatPromptTemplate.from_messages([
    ("system", "Convert the research notes into the requested structure. Keep only items that the notes support."),
    ("user", "Topic: {topic}\n\nResearch notes:\n{content}"),
])

ROLE_ANALYSIS_TEMPLATE = ChatPromptTemplate.from_messages([
    ("system", COACH_SYSTEM_PROMPT),
    ("user", """Analyse how {company} competes for {role} talent.

Job:
{job_summary}

Company:
{company_summary}

Competitors:
{competitors}

Recent news:
{news}

Interview experiences:
{experiences}

Return strategic advantages, recent developments, competitive positioning, how this role compares to the same role at competitors, and up to three market trends."""),
])

UNIFIED_CONTEXT_TEMPLATE = ChatPromptTemplate.from_messages([
    ("system", COACH_SYSTEM_PROMPT),
    ("user", """Build a personalised preparation strategy.

Role: {role} at {company}
Candidate profile: {profile}
CV summary: {cv}
Competitive intelligence: {ci_summary}

Identify strengths to amplify, gaps to bridge, confidence builders, and how the candidate should weave company research into answers."""),
])


# ==============================================================================
# GENERATION
# ==============================================================================

PERSONA_TEMPLATE = ChatPromptTemplate.from_messages([
    ("system", COACH_SYSTEM_PROMPT),
    ("user", """Create the interviewer for round {round_number} ({round_type}) of a {role} interview at {company}.
Round focus: {focus}

The interviewer knows:
{ci_summary}

Use id "{persona_id}", round_number {round_number} and round_type "{round_type}". Give them a realistic name, title, tenure and 2-5 personality traits."""),
])

QUESTION_TEMPLATE = ChatPromptTemplate.from_messages([
    ("system", COACH_SYSTEM_PROMPT),
    ("user", """Write 4-6 questions {interviewer} is likely to ask in the {round_type} round for {role} at {company}.
Round focus: {focus}
Preferred category: {category}

Company context:
{ci_summary}

Prefix question ids with "{round_type}-q"."""),
])

PREP_GUIDE_TEMPLATE = ChatPromptTemplate.from_messages([
    ("system", COACH_SYSTEM_PROMPT),
    ("user", """Write the candidate's preparation guide for the {round_type} round ({role} at {company}).

Questions to expect:
{questions}

Competitive intelligence:
{ci_summary}

Personal strategy:
{strategy}

Cover talking points for strategic advantages and recent developments, what great answers sound like, and how to approach each question."""),
])

REVERSE_QUESTIONS_TEMPLATE = ChatPromptTemplate.from_messages([
    ("system", COACH_SYSTEM_PROMPT),
    ("user", """Write the questions the candidate should ask their interviewers across all five rounds of a {role} interview at {company}.

<facts>
{facts}
</facts>

Step 1: allocate fact ids to rounds in fact_allocation.
Step 2: for each round write 2-5 questions, each based on exactly one allocated fact. Set ci_fact_id to the fact id and ci_fact_used to the exact fact text.
Step 3: no fact id may be used by more than {cap} questions in total across all rounds. Revise the allocation before answering if any fact exceeds the limit.

Rounds: recruiter_screen, behavioral_deep_dive, culture_values_alignment, strategic_role_discussion, executive_final.
Question ids look like "<round>-rq<n>"."""),
])

ROUND_CONTENT_TEMPLATE = ChatPromptTemplate.from_messages([
    ("system", COACH_SYSTEM_PROMPT),
    ("user", """Write the body of round {round_number}: "{title}" ({duration} minutes) for {role} at {company}.
Interviewer: {interviewer}
Focus areas: {focus}
Key questions:
{questions}
{refinement_note}
Return topics with time allocations, weighted evaluation criteria (weights sum to 1), an opening script and a closing script."""),
])

QUALITY_EVALUATION_TEMPLATE = ChatPromptTemplate.from_messages([
    ("system", "You review interview preparation curricula. Score 0-100 for specificity to the company, coverage of the role, and usefulness to the candidate. Be strict."),
    ("user", "Curriculum for {role} at {company}:\n\n{curriculum}"),
])


def format_facts(facts: Sequence[Fact]) -> str:
    """Render facts as tagged lines the reverse-question prompt refers to by id."""
    return "\n".join(f'<fact id="{f.id}" type="{f.source_type}">{f.text}</fact>' for f in facts)


def bullet_list(items: Iterable[str], empty: str = "- (none)") -> str:
    lines: List[str] = [f"- {item}" for item in items if item]
    return "\n".join(lines) if lines else empty
