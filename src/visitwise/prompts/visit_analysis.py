"""Instruction payload for the visit analysis job.

The template asks for a JSON object whose keys are exactly the
:class:`~visitwise.models.StructuredResult` fields, so the response parser
can validate it directly.
"""

from __future__ import annotations

from visitwise.models import ActionItemCategory, AnalysisContext

# ── Raw prompt data ──────────────────────────────────────────────────

_PROMPT_DATA: dict[str, str] = {
    "VISIT_ANALYSIS_PROMPT": """You are a patient advocate helping a pregnant person \
understand the attached record of a recent medical visit. Write at a {reading_level} \
reading level, in {language}. Use only information found in the document.

{profile_hints}

Return ONLY a JSON object with this exact structure:
{{
    "maternal_status": "<how the pregnant person is doing>",
    "fetal_status": "<how the baby is doing>",
    "next_steps": ["<plain-language next step>"],
    "action_items": [
        {{"title": "<short task>", "description": "<details>", "category": "<one of: {categories}>"}}
    ],
    "learning_modules": [
        {{
            "title": "<topic>",
            "description": "<why it matters now>",
            "sections": [{{"heading": "<heading>", "body": "<content>"}}],
            "trimester": "<first|second|third or null>",
            "week": <gestational week or null>
        }}
    ],
    "glossary": [{{"term": "<medical term>", "definition": "<plain meaning>"}}],
    "suggested_questions": ["<question for the next visit>"],
    "diagnoses": [{{"name": "<diagnosis>", "explanation": "<plain explanation>"}}],
    "tests_and_procedures": [{{"name": "<test or procedure>", "explanation": "<plain explanation>"}}],
    "communication_notes": "<how the care team communicated, or empty>",
    "advocacy_notes": "<where the patient may want to speak up, or empty>",
    "contradictions": ["<statements in the record that conflict>"],
    "flags": ["<short machine-readable concern, e.g. 'elevated_bp'>"],
    "provider_name": "<provider name or null>",
    "visit_type": "<visit type or null>"
}}

Leave a field empty rather than guessing.""",
}


def _profile_hints(context: AnalysisContext) -> str:
    hints = []
    if context.trimester:
        hints.append(f"- Trimester: {context.trimester}")
    if context.gestational_week is not None:
        hints.append(f"- Gestational week: {context.gestational_week}")
    if context.known_conditions:
        hints.append(f"- Known conditions: {', '.join(context.known_conditions)}")
    if context.provider_name:
        hints.append(f"- Provider: {context.provider_name}")
    if context.visit_type:
        hints.append(f"- Visit type: {context.visit_type}")
    if not hints:
        return "No profile details were provided."
    return "Patient profile:\n" + "\n".join(hints)


def build_instructions(context: AnalysisContext | None = None) -> str:
    """Compose the task instructions for one analysis run."""
    context = context or AnalysisContext()
    return _PROMPT_DATA["VISIT_ANALYSIS_PROMPT"].format(
        reading_level=context.reading_level,
        language=context.preferred_language,
        profile_hints=_profile_hints(context),
        categories=", ".join(c.value for c in ActionItemCategory),
    )
