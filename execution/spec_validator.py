"""Tollgate validation for finished specification documents.

Scores a markdown specification against two weighted checklists:

- Tollgate 4, Completeness & Specificity
- Tollgate 5, Production Readiness

Every check is an independent boolean predicate over the document text, so
the numeric result is deterministic and always a pure function of the
text. Failed or noteworthy checks produce remediation records; findings
never raise. An optional clarity scorer can add informational
remediations but never changes the score.
"""

import logging
import math
import re
from dataclasses import asdict, dataclass, field
from datetime import datetime, timezone
from decimal import ROUND_HALF_UP, Decimal
from typing import Callable

from config.settings import (
    CLARITY_EXCERPT_CHARS,
    CLARITY_MIN_WORDS,
    PASS_THRESHOLD,
    TOLLGATE_WEIGHTS,
    WEASEL_DENSITY_LIMIT,
)
from execution.adaptive_depth import (
    SPEC_SECTIONS,
    get_required_sections,
    get_word_floors,
    resolve_complexity,
)
from execution.section_parser import count_words, get_section
from execution.vague_language import (
    count_assumptions,
    count_weasel_words,
    find_placeholders,
    weasel_density,
)

logger = logging.getLogger(__name__)

SEVERITY_ORDER = {"critical": 0, "warning": 1, "info": 2}

GRADE_THRESHOLDS = [(90, "A"), (80, "B"), (70, "C"), (60, "D")]

CLARITY_SAMPLE_SECTION = 5
MAX_CLARITY_REMEDIATIONS = 3


@dataclass
class Check:
    """One atomic, independently testable condition."""

    id: str
    description: str
    passed: bool
    details: str | None = None


@dataclass
class Remediation:
    """A located, severity-tagged fix suggestion. Advisory only."""

    tollgate: int
    severity: str         # "critical", "warning", "info"
    section: str
    message: str
    auto_fixable: bool = False


@dataclass
class TollgateResult:
    """Checklist outcome for one tollgate."""

    number: int
    name: str
    weight: float
    checks: list[Check]
    passed_count: int
    failed_count: int
    score: int

    @classmethod
    def from_checks(cls, number: int, name: str, weight: float, checks: list[Check]) -> "TollgateResult":
        passed = sum(1 for c in checks if c.passed)
        score = _round_half_up(Decimal(100 * passed) / Decimal(len(checks))) if checks else 0
        return cls(
            number=number,
            name=name,
            weight=weight,
            checks=checks,
            passed_count=passed,
            failed_count=len(checks) - passed,
            score=score,
        )


@dataclass
class ValidationReport:
    """Weighted aggregate of all tollgates for one document."""

    tollgates: list[TollgateResult]
    overall_score: int
    grade: str
    passed: bool
    remediations: list[Remediation]
    word_count: int
    required_sections: list[int]
    complexity: str | None = None
    llm_clarity: dict | None = None
    generated_at: str = field(default_factory=lambda: datetime.now(timezone.utc).isoformat())

    def to_dict(self) -> dict:
        return asdict(self)

    def tollgate(self, number: int) -> TollgateResult:
        for result in self.tollgates:
            if result.number == number:
                return result
        raise KeyError(f"No tollgate {number} in report")


def _round_half_up(value: Decimal) -> int:
    return int(value.quantize(Decimal("1"), rounding=ROUND_HALF_UP))


def score_to_grade(score: int) -> str:
    """Map an overall score (0-100) to a letter grade."""
    for threshold, grade in GRADE_THRESHOLDS:
        if score >= threshold:
            return grade
    return "F"


def _check_weights() -> None:
    if not math.isclose(sum(TOLLGATE_WEIGHTS.values()), 1.0):
        raise ValueError(
            f"Tollgate weights must sum to 1.0, got {sum(TOLLGATE_WEIGHTS.values())}"
        )


# ---------------------------------------------------------------------------
# Predicates: (text) -> (passed, details)
# ---------------------------------------------------------------------------

FIELD_TYPE_PATTERN = re.compile(
    r"\b(string|number|boolean|uuid|integer|float|text|date|timestamp|varchar|int|enum)\b",
    re.IGNORECASE,
)
TABLE_ROW_PATTERN = re.compile(r"\|.*\|.*\|")
API_METHOD_PATTERN = re.compile(r"\b(GET|POST|PUT|PATCH|DELETE)\s+/")
INTERFACE_PATTERN = re.compile(
    r"\binterface\s+\w+|^class\s+\w+\((?:BaseModel|TypedDict)\)", re.MULTILINE
)
CRITERIA_PATTERN = re.compile(r"\b(GIVEN|WHEN|THEN|acceptance\s+criteria)\b", re.IGNORECASE)
ERROR_HANDLING_PATTERN = re.compile(r"\berror\s+(response|handling|code|table)", re.IGNORECASE)
STATUS_CODE_PATTERN = re.compile(r"\b(400|401|403|404|409|422|429|500)\b")
EDGE_CASE_PATTERN = re.compile(
    r"edge\s+case|boundary|corner\s+case|empty\s+state|invalid\s+input", re.IGNORECASE
)
NUMBERED_STEP_PATTERN = re.compile(r"^\s*\d+\.\s+", re.MULTILINE)

VERSION_PATTERNS = [
    re.compile(r"\bv(?:ersion)?[\s:*_]*\d+\.\d+", re.IGNORECASE),
    re.compile(r"\b\d+\.\d+\.\d+\b"),
]
METRICS_PATTERN = re.compile(r"success\s+metric|\bkpi|measur", re.IGNORECASE)
ROADMAP_PATTERN = re.compile(r"roadmap|implementation\s+(plan|roadmap)|phase\s+\d", re.IGNORECASE)
TECH_VERSION_PATTERNS = [
    re.compile(
        r"\b(next\.?js|react|node|bun|deno|postgres(?:ql)?|supabase|prisma|drizzle|"
        r"tailwind|vite|python|django|fastapi|flask|redis|typescript|kubernetes|docker)\s+\d",
        re.IGNORECASE,
    ),
    re.compile(r"v\d+(\.\d+)?"),
]
NUMBERED_H2_PATTERN = re.compile(r"^## (\d+)\.", re.MULTILINE)
RISK_PATTERN = re.compile(
    r"risk\s+(register|assessment|analysis)|probability|impact|mitigation", re.IGNORECASE
)
SECURITY_PATTERN = re.compile(
    r"\b(authentication|authorization|encrypt\w*|RBAC|OAuth|JWT|CORS|XSS|CSRF|sanitiz\w*)\b",
    re.IGNORECASE,
)
PERFORMANCE_PATTERN = re.compile(
    r"\b(latency|response\s+time|load\s+time|\d+ms|\d+\s*sec|concurrent|throughput|p95|p99)\b",
    re.IGNORECASE,
)


def _has_field_types(text: str) -> tuple[bool, str | None]:
    return bool(FIELD_TYPE_PATTERN.search(text)), None


def _has_tables(text: str) -> tuple[bool, str | None]:
    rows = len(TABLE_ROW_PATTERN.findall(text))
    if rows >= 3:
        return True, None
    return False, f"Only {rows} table rows found. Use tables for field definitions, endpoints, and errors."


def _has_typed_interfaces(text: str) -> tuple[bool, str | None]:
    count = len(INTERFACE_PATTERN.findall(text))
    if count >= 2:
        return True, None
    return False, f"Only {count} typed interfaces. Define request and response types."


def _has_code_blocks(text: str) -> tuple[bool, str | None]:
    blocks = text.count("```") // 2
    if blocks >= 2:
        return True, None
    return False, f"Only {blocks} code blocks. Add type definitions and examples."


def _has_acceptance_criteria(text: str) -> tuple[bool, str | None]:
    return bool(CRITERIA_PATTERN.search(text)), None


def _has_error_handling(text: str) -> tuple[bool, str | None]:
    found = ERROR_HANDLING_PATTERN.search(text) or STATUS_CODE_PATTERN.search(text)
    return bool(found), None


def _has_edge_cases(text: str) -> tuple[bool, str | None]:
    return bool(EDGE_CASE_PATTERN.search(text)), None


def _has_numbered_flows(text: str) -> tuple[bool, str | None]:
    return bool(NUMBERED_STEP_PATTERN.search(text)), None


def _has_version(text: str) -> tuple[bool, str | None]:
    return any(p.search(text) for p in VERSION_PATTERNS), None


def _has_metrics(text: str) -> tuple[bool, str | None]:
    return bool(METRICS_PATTERN.search(text)), None


def _has_roadmap(text: str) -> tuple[bool, str | None]:
    return bool(ROADMAP_PATTERN.search(text)), None


def _has_tech_versions(text: str) -> tuple[bool, str | None]:
    return any(p.search(text) for p in TECH_VERSION_PATTERNS), None


def _has_sequential_numbering(text: str) -> tuple[bool, str | None]:
    numbers = [int(n) for n in NUMBERED_H2_PATTERN.findall(text)]
    if len(numbers) < 5:
        return False, f"Only {len(numbers)} numbered sections found."
    for previous, current in zip(numbers, numbers[1:]):
        if current <= previous:
            return False, f"Section {current} follows section {previous}."
    return True, None


def _has_risks(text: str) -> tuple[bool, str | None]:
    return bool(RISK_PATTERN.search(text)), None


def _has_security(text: str) -> tuple[bool, str | None]:
    return bool(SECURITY_PATTERN.search(text)), None


def _has_performance(text: str) -> tuple[bool, str | None]:
    return bool(PERFORMANCE_PATTERN.search(text)), None


# (id, description, predicate, remediation severity, remediation section, message)
COMPLETENESS_CHECKS = [
    ("data_model_types", "Data model includes typed field definitions", _has_field_types,
     "warning", "Section 5", "Give every data model field an explicit type."),
    ("has_tables", "Uses structured tables for data definitions", _has_tables,
     "info", "Section 5", "Use markdown tables for field definitions, endpoints, and error codes."),
    ("has_typed_interfaces", "Typed interfaces defined for data contracts", _has_typed_interfaces,
     "info", "Section 6", "Define typed request and response interfaces for the API."),
    ("has_code_blocks", "Includes code examples and type definitions", _has_code_blocks,
     "info", "Section 6", "Add fenced code blocks with type definitions and examples."),
    ("has_acceptance_criteria", "Features have testable acceptance criteria", _has_acceptance_criteria,
     "warning", "Section 3", "Add GIVEN/WHEN/THEN acceptance criteria to each feature."),
    ("has_error_handling", "Error handling documented with status codes", _has_error_handling,
     "warning", "Section 6", "Document error responses with HTTP status codes."),
    ("has_edge_cases", "Edge cases documented", _has_edge_cases,
     "info", "Section 7", "Describe edge cases such as empty states and invalid input."),
    ("has_numbered_flows", "User flows use numbered steps", _has_numbered_flows,
     "info", "Section 7", "Write key user flows as numbered steps."),
]

PRODUCTION_CHECKS = [
    ("has_version", "Version number assigned", _has_version,
     "warning", "Section 1", "Missing version number. Add 'Version: 1.0' to the Product Overview."),
    ("has_metrics", "Success metrics defined", _has_metrics,
     "warning", "Section 1", "Define measurable success metrics or KPIs."),
    ("has_roadmap", "Implementation roadmap present", _has_roadmap,
     "warning", "Section 14", "Add an implementation roadmap broken into phases."),
    ("has_tech_versions", "Technology choices include version numbers", _has_tech_versions,
     "info", "Section 8", "Pin technology choices to versions (for example 'PostgreSQL 16')."),
    ("section_numbering", "Sections numbered sequentially", _has_sequential_numbering,
     "warning", "Throughout", "Number top-level sections sequentially ('## 1.', '## 2.', ...)."),
    ("has_risks", "Risk assessment included", _has_risks,
     "info", "Section 14", "Add a risk assessment with probability, impact, and mitigation."),
    ("has_security", "Security architecture addressed", _has_security,
     "warning", "Section 12", "Describe authentication, authorization, and data protection."),
    ("has_performance", "Performance targets specified", _has_performance,
     "warning", "Section 13", "State performance targets such as p95 latency or throughput."),
]


def _run_table(tollgate: int, table: list, text: str) -> tuple[list[Check], list[Remediation]]:
    checks = []
    remediations = []
    for check_id, description, predicate, severity, section, message in table:
        passed, details = predicate(text)
        checks.append(Check(id=check_id, description=description, passed=passed, details=details))
        if not passed:
            remediations.append(Remediation(tollgate, severity, section, message))
    return checks, remediations


def _section_present(text: str, number: int) -> bool:
    return re.search(rf"^##\s+{number}(?:\.|:|\s)", text, re.MULTILINE) is not None


# ---------------------------------------------------------------------------
# Tollgates
# ---------------------------------------------------------------------------


def run_completeness_tollgate(
    markdown: str,
    required_sections: list[int],
    min_words: int,
    comprehensive_words: int,
) -> tuple[TollgateResult, list[Remediation]]:
    """Run Tollgate 4: Completeness & Specificity.

    Args:
        markdown: The specification text.
        required_sections: Section numbers that must be present.
        min_words: Minimum word count.
        comprehensive_words: Word count for comprehensive depth.

    Returns:
        Tuple of (TollgateResult, remediations).
    """
    checks = []
    remediations = []
    word_count = count_words(markdown)

    for number in required_sections:
        title = SPEC_SECTIONS[number]
        present = _section_present(markdown, number)
        checks.append(Check(
            id=f"section_{number}",
            description=f"Section {number}: {title} exists",
            passed=present,
            details=None if present else f"Missing section {number}: {title}",
        ))
        if not present:
            remediations.append(Remediation(
                4, "critical", f"Section {number}", f"Missing required section: {title}",
            ))

    weasels = count_weasel_words(markdown)
    density = weasel_density(markdown, word_count)
    weasel_ok = density < WEASEL_DENSITY_LIMIT
    found = ", ".join(weasels["unique"][:5])
    checks.append(Check(
        id="clarity_weasel_low",
        description=f"Minimal vague language (< {WEASEL_DENSITY_LIMIT:g} per 1000 words)",
        passed=weasel_ok,
        details=(
            f"{weasels['total']} vague words ({density:.1f}/1000 words)"
            + ("" if weasel_ok else f": {found}")
        ),
    ))
    if not weasel_ok:
        remediations.append(Remediation(
            4, "warning", "Throughout",
            f"Found {weasels['total']} vague words ({found}). Replace with specific terms.",
        ))

    checks.append(Check(
        id="depth_minimum",
        description=f"Spec meets minimum depth (>= {min_words} words)",
        passed=word_count >= min_words,
        details=None if word_count >= min_words else f"Only {word_count} words. Spec needs more detail.",
    ))
    if word_count < min_words:
        remediations.append(Remediation(
            4, "warning", "Throughout",
            f"Only {word_count} words; expand the specification to at least {min_words}.",
        ))
    checks.append(Check(
        id="depth_comprehensive",
        description=f"Spec has comprehensive depth (>= {comprehensive_words} words)",
        passed=word_count >= comprehensive_words,
        details=(
            None if word_count >= comprehensive_words
            else f"{word_count} words; aim for {comprehensive_words}+ for thorough coverage."
        ),
    ))
    if min_words <= word_count < comprehensive_words:
        remediations.append(Remediation(
            4, "info", "Throughout",
            f"{word_count} words; aim for {comprehensive_words}+ for thorough coverage.",
        ))

    table_checks, table_remediations = _run_table(4, COMPLETENESS_CHECKS, markdown)
    checks.extend(table_checks)
    remediations.extend(table_remediations)

    has_methods = bool(API_METHOD_PATTERN.search(markdown))
    api_ok = has_methods or 6 not in required_sections
    checks.append(Check(
        id="api_methods",
        description="API endpoints include HTTP methods",
        passed=api_ok,
    ))
    if not api_ok:
        remediations.append(Remediation(
            4, "warning", "Section 6", "Tag every endpoint with its HTTP method (GET /path).",
        ))

    result = TollgateResult.from_checks(
        4, "Completeness & Specificity", TOLLGATE_WEIGHTS["completeness"], checks,
    )
    return result, remediations


def run_production_tollgate(markdown: str) -> tuple[TollgateResult, list[Remediation]]:
    """Run Tollgate 5: Production Readiness.

    Placeholder markers are a failed check and a critical remediation.
    Assumption markers are informational and never fail.

    Args:
        markdown: The specification text.

    Returns:
        Tuple of (TollgateResult, remediations).
    """
    checks = []
    remediations = []

    placeholders = find_placeholders(markdown)
    terms = [p["term"] for p in placeholders]
    checks.append(Check(
        id="no_placeholders",
        description="No TODO/TBD/placeholder text",
        passed=not placeholders,
        details=f"Found: {', '.join(terms)}" if placeholders else None,
    ))
    if placeholders:
        lines = ", ".join(str(p["line"]) for p in placeholders[:3])
        remediations.append(Remediation(
            5, "critical", "Throughout",
            f"Found {len(placeholders)} placeholder markers ({', '.join(terms[:3])}) "
            f"at line(s) {lines}. All must be resolved.",
        ))

    assumptions = count_assumptions(markdown)
    checks.append(Check(
        id="assumptions_flagged",
        description="Assumptions explicitly marked with [ASSUMPTION]",
        passed=True,
        details=(
            f"{assumptions} assumptions flagged for review" if assumptions
            else "No assumptions to review"
        ),
    ))
    if assumptions:
        remediations.append(Remediation(
            5, "info", "Throughout",
            f"{assumptions} [ASSUMPTION] markers: confirm each with a stakeholder.",
        ))

    table_checks, table_remediations = _run_table(5, PRODUCTION_CHECKS, markdown)
    checks.extend(table_checks)
    remediations.extend(table_remediations)

    result = TollgateResult.from_checks(
        5, "Production Readiness", TOLLGATE_WEIGHTS["production"], checks,
    )
    return result, remediations


def _clarity_excerpt(markdown: str) -> tuple[str, str]:
    section = get_section(markdown, CLARITY_SAMPLE_SECTION)
    if section is not None:
        return section.content[:CLARITY_EXCERPT_CHARS], section.title
    return markdown[:CLARITY_EXCERPT_CHARS], "Opening"


def _score_clarity(
    markdown: str, clarity_scorer: Callable[[str, str], dict]
) -> tuple[dict | None, list[Remediation]]:
    excerpt, label = _clarity_excerpt(markdown)
    try:
        clarity = clarity_scorer(excerpt, label)
        issues = list(clarity.get("issues", []))
    except Exception as e:
        logger.warning("Clarity scoring failed: %s. Continuing without it.", e)
        return None, []
    remediations = [
        Remediation(4, "info", "LLM Analysis", str(issue))
        for issue in issues[:MAX_CLARITY_REMEDIATIONS]
    ]
    return clarity, remediations


def validate_spec(
    markdown: str,
    complexity: str | None = None,
    required_sections: list[int] | None = None,
    clarity_scorer: Callable[[str, str], dict] | None = None,
) -> ValidationReport:
    """Score a specification document against both tollgates.

    Args:
        markdown: The specification text.
        complexity: Optional tier; selects word floors and which mandatory
            sections apply.
        required_sections: Explicit section numbers to require; overrides
            the tier's set.
        clarity_scorer: Optional callable(excerpt, label) -> clarity dict.
            Its failure is logged and ignored.

    Returns:
        The full ValidationReport.

    Raises:
        ValueError: If the complexity or a required section number is
            unknown, or the tollgate weights do not sum to 1.0.
    """
    _check_weights()
    if complexity is not None:
        complexity = resolve_complexity(complexity)
    sections = (
        list(required_sections) if required_sections is not None
        else get_required_sections(complexity)
    )
    unknown = [n for n in sections if n not in SPEC_SECTIONS]
    if unknown:
        raise ValueError(f"Unknown section numbers: {unknown}")
    min_words, comprehensive_words = get_word_floors(complexity)

    completeness, completeness_fixes = run_completeness_tollgate(
        markdown, sections, min_words, comprehensive_words,
    )
    production, production_fixes = run_production_tollgate(markdown)
    tollgates = [completeness, production]

    overall = _round_half_up(sum(
        Decimal(t.score) * Decimal(str(t.weight)) for t in tollgates
    ))

    word_count = count_words(markdown)
    remediations = completeness_fixes + production_fixes
    llm_clarity = None
    if clarity_scorer is not None and word_count > CLARITY_MIN_WORDS:
        llm_clarity, clarity_fixes = _score_clarity(markdown, clarity_scorer)
        remediations.extend(clarity_fixes)
    remediations.sort(key=lambda r: SEVERITY_ORDER[r.severity])

    return ValidationReport(
        tollgates=tollgates,
        overall_score=overall,
        grade=score_to_grade(overall),
        passed=overall >= PASS_THRESHOLD,
        remediations=remediations,
        word_count=word_count,
        required_sections=sections,
        complexity=complexity,
        llm_clarity=llm_clarity,
    )


def generate_validation_report(report: dict) -> str:
    """Render a validation report as markdown.

    Args:
        report: A ValidationReport in dict form.

    Returns:
        A formatted markdown string.
    """
    status = "PASS" if report.get("passed") else "FAIL"
    lines = ["# Specification Validation Report", ""]
    lines.append(
        f"**Overall: {report['overall_score']}/100 (Grade {report['grade']}) {status}**"
    )
    lines.append(f"Word count: {report['word_count']}")
    lines.append("")

    for tollgate in report["tollgates"]:
        lines.append(
            f"## Tollgate {tollgate['number']}: {tollgate['name']} "
            f"{tollgate['score']}/100 (weight {tollgate['weight']:.2f})"
        )
        for check in tollgate["checks"]:
            mark = "x" if check["passed"] else " "
            line = f"- [{mark}] {check['description']}"
            if check.get("details") and not check["passed"]:
                line += f": {check['details']}"
            lines.append(line)
        lines.append("")

    lines.append("## Remediations")
    if report["remediations"]:
        for item in report["remediations"]:
            lines.append(
                f"- **{item['severity'].upper()}** ({item['section']}): {item['message']}"
            )
    else:
        lines.append("- No remediations")
    lines.append("")

    clarity = report.get("llm_clarity")
    if clarity:
        lines.append("## Clarity Review")
        lines.append(f"Overall clarity: {clarity.get('overall')}/10")
        for suggestion in clarity.get("suggestions", []):
            lines.append(f"- {suggestion}")
        lines.append("")

    return "\n".join(lines)
