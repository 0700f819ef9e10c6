"""Cheap, explainable heuristics to score extraction quality.

The score starts from the extraction confidence and is penalized for
patterns that typically come from OCR mistakes and for very short output.
"""

import re
from typing import List

from .models import ExtractionResult, QualityReport
from .utils import clamp_confidence

LOW_CONFIDENCE_THRESHOLD = 0.7
GOOD_QUALITY_THRESHOLD = 0.7
MIN_TEXT_LENGTH = 50
SUSPICIOUS_PATTERN_PENALTY = 0.2
SHORT_TEXT_PENALTY = 0.3

LOW_CONFIDENCE_SUGGESTION = (
    "Low confidence detected. Consider rescanning with higher resolution."
)
SUSPICIOUS_PATTERN_SUGGESTION = (
    "Potential OCR errors detected. Review the extracted text carefully."
)
SHORT_TEXT_SUGGESTION = (
    "Very little text extracted. Ensure the document contains readable text."
)

_SUSPICIOUS_PATTERNS = [
    re.compile(r"[0O]{3,}"),  # runs of zeros / capital Os
    re.compile(r"[1Il]{3,}"),  # runs of ones / Is / ls
    re.compile(r"\s{5,}"),  # large gaps
    re.compile(r"[^\w\s.,;:!?()-]{3,}"),  # symbol soup
]


def has_suspicious_patterns(text: str) -> bool:
    return any(pattern.search(text) for pattern in _SUSPICIOUS_PATTERNS)


def validate_ocr_quality(result: ExtractionResult) -> QualityReport:
    """Score an extraction result and suggest improvements.

    Args:
        result: Any extraction result (PDF, image or plain text)

    Returns:
        QualityReport with a score in [0, 1] and ordered suggestions
    """
    text = result.text or ""
    suggestions: List[str] = []
    score = result.confidence

    if result.confidence < LOW_CONFIDENCE_THRESHOLD:
        suggestions.append(LOW_CONFIDENCE_SUGGESTION)

    if has_suspicious_patterns(text):
        score -= SUSPICIOUS_PATTERN_PENALTY
        suggestions.append(SUSPICIOUS_PATTERN_SUGGESTION)

    if len(text) < MIN_TEXT_LENGTH:
        score -= SHORT_TEXT_PENALTY
        suggestions.append(SHORT_TEXT_SUGGESTION)

    score = clamp_confidence(score)

    return QualityReport(
        is_good_quality=score >= GOOD_QUALITY_THRESHOLD,
        quality_score=round(score, 6),
        suggestions=tuple(suggestions),
    )
