"""
Confidence values for CV extraction records.

Every list record produced by a parser carries its own confidence. The values
are fixed per extraction strategy and collected here so that a reader can see
what each number means and tune them without touching parser control flow.

Confidence Scale:
  1.0   = Exact match (catalog name, known value)
  0.85  = Structured LLM output for core sections
  0.8   = Structured LLM output for secondary sections, section heading match
  0.7   = Deterministic record with both anchor fields (degree + institution)
  0.6   = Deterministic heuristic with a single strong signal
  0.5   = Deterministic heuristic with weak signals (courses)
  <0.5  = Low confidence (should prompt for clarification)
"""

from typing import Dict, Iterable

# Section heading matched one of the canonical heading patterns.
SECTION_MATCH = 0.8

# Deterministic parser, per record kind.
DETERMINISTIC: Dict[str, float] = {
    "education": 0.7,
    "certification": 0.6,
    "course": 0.5,
    "skill": 0.6,
    "skill_category": 0.7,
    "work_experience": 0.7,
    "project": 0.6,
}

# LLM parser, per record kind. The model does not report per-field certainty.
LLM: Dict[str, float] = {
    "education": 0.85,
    "certification": 0.8,
    "course": 0.8,
    "skill": 0.85,
    "skill_category": 0.85,
    "work_experience": 0.85,
    "project": 0.8,
    "total": 0.85,
}

# Category resolved through the synonym table rather than the catalog.
CATEGORY_SYNONYM_MATCH = 0.8


def mean_confidence(values: Iterable[float]) -> float:
    """
    Arithmetic mean of record confidences, 0.0 when there are none.

    Record confidences are never recomputed after the fact; they are only
    aggregated here into the CV-level total.
    """
    vals = list(values)
    if not vals:
        return 0.0
    return sum(vals) / len(vals)
