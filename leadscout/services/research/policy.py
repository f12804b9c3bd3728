"""Research policy: query patterns, confidence rules, and prompt templates.

These strings decide which company the model looks at and how much it trusts
what it finds, so changes here are behavior changes. Bump ``POLICY_VERSION``
whenever the wording of a rule or template changes.
"""

from __future__ import annotations

from collections.abc import Sequence
from typing import Final

from leadscout.models.research import PersonCandidate
from leadscout.services.research.domain import company_slug

POLICY_VERSION: Final[str] = "research-policy.v1"

PRIORITY_ORDER: Final[str] = "CEO/Founders > C-Suite > VPs > Directors"
EXCLUDED_ROLES: Final[str] = "Board members, investors, advisors"

CONFIDENCE_RULES: Final[dict[str, str]] = {
    "high": "URL contains {domain} or the text explicitly states they work there",
    "medium": "Context suggests they work there but it is not 100% clear",
    "low": "Might be the wrong company or outdated",
}

GOOD_QUERY_PATTERNS: Final[tuple[str, ...]] = (
    '"{domain}" CEO founder',
    'site:linkedin.com/in "{domain}"',
    'site:crunchbase.com "{domain}"',
    '"{name}" "{domain}" leadership team',
)

BAD_QUERY_PATTERNS: Final[tuple[tuple[str, str], ...]] = (
    ("{name} CEO", "too ambiguous if common name"),
    ("site:{domain} team", "might not have leadership page"),
)

RESEARCH_SEED_QUERIES: Final[tuple[str, ...]] = (
    '"{domain}" company - to understand what they do',
    '"{domain}" founders OR leadership - to find where leadership info exists',
)

PEOPLE_SEED_QUERIES: Final[tuple[str, ...]] = (
    '"{domain}" founders CEO',
    'site:linkedin.com/in "{domain}"',
    'site:crunchbase.com/organization "{slug}"',
)

REVALIDATION_QUERIES: Final[tuple[str, ...]] = (
    '"{domain}" "founded by" OR "co-founded"',
    '"{domain}" announcement funding team',
    'site:techcrunch.com OR site:ycombinator.com "{domain}"',
)


def _numbered(lines: Sequence[str]) -> str:
    return "\n".join(f"{index}. {line}" for index, line in enumerate(lines, start=1))


def _bulleted(lines: Sequence[str]) -> str:
    return "\n".join(f"- {line}" for line in lines)


def confidence_rules(domain: str) -> str:
    return "\n".join(
        f"- {level.upper()}: {rule.format(domain=domain)}" for level, rule in CONFIDENCE_RULES.items()
    )


def research_prompts(domain: str) -> tuple[str, str]:
    """System and user prompts for the company research stage."""
    system = f"""You are researching a company to understand what it is and where to find leadership info.
Your goal is to understand:
1. What does this company do?
2. Is it a startup (YC, funded) or established company?
3. What sources would have their leadership info? (LinkedIn, Crunchbase, their website, news articles?)

IMPORTANT: Always search with "{domain}" in quotes to avoid confusion with similarly-named companies."""
    seeds = [query.format(domain=domain) for query in RESEARCH_SEED_QUERIES]
    user = f"""Research the company at {domain}.

Search for:
{_numbered(seeds)}

Summarize what you learned and where leadership info might be found."""
    return system, user


def metadata_prompt(domain: str, context: str) -> str:
    return f"""Extract company metadata for {domain} from this research.
Use null for any field the context does not state. Do not guess.

Context:
{context}"""


def people_prompts(domain: str, company_name: str | None) -> tuple[str, str]:
    """System and user prompts for the leadership search stage."""
    name = company_name or domain
    good = [pattern.format(domain=domain, name=name) for pattern in GOOD_QUERY_PATTERNS]
    bad = [f"{pattern.format(domain=domain, name=name)} ({why})" for pattern, why in BAD_QUERY_PATTERNS]
    system = f"""You are finding the leadership team for {name} (website: {domain}).

CRITICAL RULES:
1. ALWAYS include "{domain}" in quotes in your searches to avoid wrong companies
2. Search LinkedIn, Crunchbase, news articles - not just their website
3. Verify each person actually works at THIS company, not a similarly-named one
4. If initial results look wrong (wrong company), try different search strategies

Good search examples:
{_bulleted(good)}

Bad searches (will get wrong results):
{_bulleted(bad)}"""
    seeds = [query.format(domain=domain, slug=company_slug(domain)) for query in PEOPLE_SEED_QUERIES]
    user = f"""Find the founders and leadership team for {name} ({domain}).

Start by searching:
{_numbered(seeds)}

After each search, evaluate: do these results look like they're about the RIGHT company?
If not, try a different approach."""
    return system, user


def people_extraction_prompt(domain: str, company_name: str | None, context: str) -> str:
    name = company_name or domain
    return f"""Extract leadership for {name} (website: {domain}).

CRITICAL: Only include people who DEFINITELY work at {domain}.
- Check URLs - linkedin.com profiles should mention {domain}
- Check context - does it clearly say they work at this company?
- If unsure, mark confidence as "low"

Prioritize: {PRIORITY_ORDER}
Exclude: {EXCLUDED_ROLES}

Context:
{context}

For each person, assess confidence:
{confidence_rules(domain)}"""


def revalidation_prompt(domain: str, people: Sequence[PersonCandidate], reasoning: str) -> str:
    findings = [f"{p.name}: {p.role} (confidence: {p.confidence.value})" for p in people]
    queries = [query.format(domain=domain) for query in REVALIDATION_QUERIES]
    return f"""The previous search for {domain} leadership may have wrong results.

Previous findings (possibly wrong):
{_bulleted(findings) or "- none"}

Reasoning: {reasoning}

Try these targeted searches to find the CORRECT leadership:
{_numbered(queries)}

Report what you find."""


def revalidation_extraction_prompt(
    domain: str,
    people: Sequence[PersonCandidate],
    validation_context: str,
    original_context: str,
) -> str:
    findings = [f"{p.name}: {p.role}" for p in people]
    return f"""Re-extract leadership for {domain} with this additional validation context.

Previous uncertain findings:
{_bulleted(findings) or "- none"}

New validation context:
{validation_context}

Original context:
{original_context}

Only include people you're confident about now.
For each person, assess confidence:
{confidence_rules(domain)}"""
