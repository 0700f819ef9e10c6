"""Utility functions for lexextract."""

import logging
import re
import time

logger = logging.getLogger(__name__)

LOG_FORMAT = "%(asctime)s - %(name)s - %(levelname)s - %(message)s"

# Characters other than word characters, spaces and line breaks that survive
# cleaning.
PERMITTED_PUNCTUATION = ".,;:!?()\"'-"

_NON_NEWLINE_WHITESPACE = re.compile(r"[^\S\n]+")
_DISALLOWED_CHARS = re.compile(r"[^\w \n" + re.escape(PERMITTED_PUNCTUATION) + r"]")
_SPACE_RUNS = re.compile(r" {2,}")
_SPACES_AROUND_NEWLINE = re.compile(r" *\n *")
_NEWLINE_RUNS = re.compile(r"\n{2,}")


def setup_logging(verbose: bool = False) -> None:
    """Set up logging configuration for command line use."""
    level = logging.DEBUG if verbose else logging.INFO
    logging.basicConfig(level=level, format=LOG_FORMAT)


def clean_extracted_text(text: str) -> str:
    """Clean and normalize extracted text.

    Whitespace runs become single spaces, characters outside the permitted
    punctuation set are stripped, line breaks are normalized to a single
    ``\\n`` and the result is trimmed. Cleaning already-cleaned text returns it
    unchanged.

    Args:
        text: Raw text from PDF extraction or OCR

    Returns:
        Cleaned text
    """
    if not text:
        return ""

    text = text.replace("\r\n", "\n").replace("\r", "\n")
    text = _NON_NEWLINE_WHITESPACE.sub(" ", text)
    text = _DISALLOWED_CHARS.sub("", text)
    text = _SPACE_RUNS.sub(" ", text)
    text = _SPACES_AROUND_NEWLINE.sub("\n", text)
    text = _NEWLINE_RUNS.sub("\n", text)
    return text.strip()


def clamp_confidence(value: float) -> float:
    """Clamp a confidence value into [0, 1]."""
    return max(0.0, min(1.0, float(value)))


def elapsed_ms(start: float) -> float:
    """Milliseconds elapsed since a ``time.perf_counter()`` timestamp."""
    return round((time.perf_counter() - start) * 1000.0, 3)
