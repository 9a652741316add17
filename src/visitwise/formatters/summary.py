"""Human-readable rendering of a structured visit analysis.

A pure function of the :class:`StructuredResult`: sections appear in a fixed
order and any section whose data is absent or blank is left out entirely,
heading included.
"""

from __future__ import annotations

from typing import Callable, Iterable, Optional

from visitwise.models import Explanation, StructuredResult


def _text(value: str) -> Optional[str]:
    value = (value or "").strip()
    return value or None


def _bullets(items: Iterable[str]) -> Optional[str]:
    lines = [f"- {item.strip()}" for item in items if item and item.strip()]
    return "\n".join(lines) or None


def _explanations(items: Iterable[Explanation]) -> Optional[str]:
    lines = []
    for item in items:
        name = item.name.strip()
        if not name:
            continue
        body = item.explanation.strip()
        lines.append(f"- **{name}**: {body}" if body else f"- **{name}**")
    return "\n".join(lines) or None


def _action_guidance(result: StructuredResult) -> Optional[str]:
    steps = _bullets(result.next_steps)
    actions = _bullets(
        f"{a.title.strip()}: {a.description.strip()}" if a.description.strip() else a.title
        for a in result.action_items
    )
    parts = [p for p in (steps, actions) if p]
    return "\n".join(parts) or None


def _learning_topics(result: StructuredResult) -> Optional[str]:
    return _bullets(m.title for m in result.learning_modules)


def _glossary(result: StructuredResult) -> Optional[str]:
    lines = []
    for entry in result.glossary:
        term = entry.term.strip()
        if not term:
            continue
        definition = entry.definition.strip()
        lines.append(f"- **{term}**: {definition}" if definition else f"- **{term}**")
    return "\n".join(lines) or None


_SECTIONS: list[tuple[str, Callable[[StructuredResult], Optional[str]]]] = [
    ("How You Are Doing", lambda r: _text(r.maternal_status)),
    ("How Your Baby Is Doing", lambda r: _text(r.fetal_status)),
    ("What To Do Next", _action_guidance),
    ("Suggested Learning", _learning_topics),
    ("Words To Know", _glossary),
    ("Questions To Ask", lambda r: _bullets(r.suggested_questions)),
    ("Your Diagnoses Explained", lambda r: _explanations(r.diagnoses)),
    ("Tests And Procedures Explained", lambda r: _explanations(r.tests_and_procedures)),
    ("Talking With Your Care Team", lambda r: _text(r.communication_notes)),
    ("Speaking Up For Yourself", lambda r: _text(r.advocacy_notes)),
    ("Things To Double-Check", lambda r: _bullets(r.contradictions)),
]

SECTION_HEADINGS: tuple[str, ...] = tuple(heading for heading, _ in _SECTIONS)


def render_summary(result: StructuredResult) -> str:
    """Render the present sections of ``result`` as markdown."""
    blocks = []
    for heading, build in _SECTIONS:
        body = build(result)
        if body:
            blocks.append(f"## {heading}\n{body}")
    return "\n\n".join(blocks)
