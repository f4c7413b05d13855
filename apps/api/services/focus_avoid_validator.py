"""
Focus / Avoid / Insight Validator

Every piece of generated coaching text passes through here before it is
stored. Hard errors reject the text (the generator then falls back to the
rule-based template); warnings are recorded in provenance only.

Rules:
    - length limits: session focus 160, avoid cue 120, insight summary 300,
      insight detail 800
    - banned jargon anywhere
    - FLUSH focus must not contain intensity language
    - when impact is disallowed, any impact word in the avoid cue must be
      phrased as a warning ("avoid", "no", "skip")
    - endurance maintenance avoid cues must not steer toward strength work

Terms are matched on word boundaries, so "hard" does not trip on
"hardware".
"""

import re
from dataclasses import dataclass, field
from typing import Iterable, List, Optional

from services.directive_planner import Category, Constraints, Directive, Stimulus


SESSION_FOCUS_MAX = 160
AVOID_CUE_MAX = 120
INSIGHT_SUMMARY_MAX = 300
INSIGHT_DETAIL_MAX = 800

BANNED_TERMS = [
    "execute",
    "protocol",
    "briefing",
    "mission",
    "maximize",
    "absolutely",
    "ensure",
    "optimal",
    "optimize",
    "leverage",
    "utilize",
    "implement",
    "deploy",
    "strategic",
    "tactical",
    "synergy",
    "paradigm",
    "holistic",
    "ecosystem",
    "bandwidth",
    "circle back",
    "touch base",
    "deep dive",
    "low-hanging fruit",
    "move the needle",
    "think outside the box",
]

INTENSITY_TERMS = [
    "max",
    "maximum",
    "hard",
    "intense",
    "push",
    "drive",
    "aggressive",
    "explosive",
    "all-out",
    "failure",
]

IMPACT_TERMS = ["jump", "jumps", "jumping", "impact", "plyometric", "plyometrics", "explosive", "bound", "bounding"]
WARNING_WORDS = ["avoid", "no", "skip", "without", "not", "don't"]
PRESCRIPTIVE_WORDS = ["must", "should", "need to"]


@dataclass
class ValidationResult:
    valid: bool = True
    errors: List[str] = field(default_factory=list)
    warnings: List[str] = field(default_factory=list)

    def merge(self, other: "ValidationResult") -> "ValidationResult":
        return ValidationResult(
            valid=self.valid and other.valid,
            errors=self.errors + other.errors,
            warnings=self.warnings + other.warnings,
        )


def _pattern(term: str) -> re.Pattern:
    return re.compile(r"(?<![\w-])" + re.escape(term) + r"(?![\w-])", re.IGNORECASE)


_BANNED = [(t, _pattern(t)) for t in BANNED_TERMS]
_INTENSITY = [(t, _pattern(t)) for t in INTENSITY_TERMS]
_IMPACT = [_pattern(t) for t in IMPACT_TERMS]
_WARNING = [_pattern(t) for t in WARNING_WORDS]
_PRESCRIPTIVE = [_pattern(t) for t in PRESCRIPTIVE_WORDS]


def find_banned_terms(text: str) -> List[str]:
    return [term for term, pattern in _BANNED if pattern.search(text or "")]


def find_intensity_terms(text: str) -> List[str]:
    return [term for term, pattern in _INTENSITY if pattern.search(text or "")]


def _check_length(label: str, text: Optional[str], limit: int, errors: List[str], required: bool = True) -> None:
    if not text or not text.strip():
        if required:
            errors.append(f"{label} cannot be empty")
        return
    if len(text) > limit:
        errors.append(f"{label} too long ({len(text)} chars, max {limit})")


def validate_session_focus(text: str, directive: Directive) -> ValidationResult:
    errors: List[str] = []
    warnings: List[str] = []
    _check_length("session_focus", text, SESSION_FOCUS_MAX, errors)

    for term in find_banned_terms(text):
        errors.append(f'session_focus contains banned term: "{term}"')

    if directive.stimulus == Stimulus.FLUSH:
        for term in find_intensity_terms(text):
            errors.append(f'session_focus for FLUSH contains intensity term: "{term}"')

    if any(p.search(text or "") for p in _PRESCRIPTIVE):
        warnings.append("session_focus uses prescriptive language")

    return ValidationResult(valid=not errors, errors=errors, warnings=warnings)


def validate_avoid_cue(text: str, directive: Directive, constraints: Constraints) -> ValidationResult:
    errors: List[str] = []
    warnings: List[str] = []
    _check_length("avoid_cue", text, AVOID_CUE_MAX, errors)

    for term in find_banned_terms(text):
        errors.append(f'avoid_cue contains banned term: "{term}"')

    if not constraints.allow_impact:
        mentions_impact = any(p.search(text or "") for p in _IMPACT)
        phrased_as_warning = any(p.search(text or "") for p in _WARNING)
        if mentions_impact and not phrased_as_warning:
            errors.append("avoid_cue mentions impact without warning against it")

    if directive.category == Category.ENDURANCE and directive.stimulus == Stimulus.MAINTENANCE:
        lowered = (text or "").lower()
        if "strength" in lowered or "heavy" in lowered:
            errors.append("avoid_cue for endurance maintenance points at strength work")

    if directive.stimulus == Stimulus.FLUSH and not find_intensity_terms(text):
        warnings.append("avoid_cue for FLUSH does not warn against intensity")

    return ValidationResult(valid=not errors, errors=errors, warnings=warnings)


def validate_analyst_insight(summary: str, detail: Optional[str], evidence: Iterable[str]) -> ValidationResult:
    errors: List[str] = []
    warnings: List[str] = []
    _check_length("analyst_insight.summary", summary, INSIGHT_SUMMARY_MAX, errors)
    _check_length("analyst_insight.detail", detail, INSIGHT_DETAIL_MAX, errors, required=False)

    full_text = f"{summary or ''} {detail or ''}"
    for term in find_banned_terms(full_text):
        errors.append(f'analyst_insight contains banned term: "{term}"')

    evidence = list(evidence or [])
    if evidence:
        lowered = full_text.lower()
        keywords = {w.strip(".,;:()").lower() for e in evidence for w in e.split() if len(w) > 4}
        if not any(k and k in lowered for k in keywords):
            warnings.append("analyst_insight does not reference any evidence")

    return ValidationResult(valid=not errors, errors=errors, warnings=warnings)


def validate_content(
    session_focus: str,
    avoid_cue: str,
    summary: str,
    detail: Optional[str],
    directive: Directive,
    evidence: Iterable[str] = (),
) -> ValidationResult:
    return (
        validate_session_focus(session_focus, directive)
        .merge(validate_avoid_cue(avoid_cue, directive, directive.constraints))
        .merge(validate_analyst_insight(summary, detail, evidence))
    )
