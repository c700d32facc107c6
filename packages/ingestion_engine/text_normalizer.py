"""
Text normalization for document-extracted statement text.

Two jobs:
  * rebuild lines from positioned text fragments (word spacing and line
    breaks from PDF renderers are unreliable)
  * repair lines that came out as spaced-out characters ("P a y m e n t")
"""

import re
from dataclasses import dataclass
from typing import List, Optional

SINGLE_CHAR_RATIO = 0.4
MIN_LINE_THRESHOLD = 3.0
FALLBACK_LINE_THRESHOLD = 5.0
SPACE_GAP_FACTOR = 0.8
FALLBACK_SPACE_GAP = 2.0


@dataclass(frozen=True)
class TextFragment:
    """A run of text at a position on the page.

    ``y`` grows down the page, so sorting ascending gives reading order.
    """

    text: str
    x: float
    y: float
    width: Optional[float] = None
    size: Optional[float] = None


def normalize_character_spacing(line: str) -> str:
    """Join runs of single-character tokens back into words.

    Lines where fewer than 40% of tokens are single characters are returned
    unchanged, so "20 Jul CR 5.00" survives.
    """
    tokens = line.split()
    if not tokens:
        return line

    single = sum(1 for t in tokens if len(t) == 1)
    if single / len(tokens) < SINGLE_CHAR_RATIO:
        return line

    result: List[str] = []
    buffer: List[str] = []
    for token in tokens:
        if len(token) == 1 and token.isalnum():
            buffer.append(token)
            continue
        if buffer:
            result.append("".join(buffer))
            buffer = []
        result.append(token)
    if buffer:
        result.append("".join(buffer))

    return " ".join(result)


def _line_threshold(ys: List[float]) -> float:
    deltas = [abs(b - a) for a, b in zip(ys, ys[1:]) if abs(b - a) > 0.1]
    if not deltas:
        return FALLBACK_LINE_THRESHOLD
    # Upper median, matching an index of n // 2 on the sorted deltas
    ordered = sorted(deltas)
    return max(MIN_LINE_THRESHOLD, ordered[len(ordered) // 2] / 2)


def join_fragments(fragments: List[TextFragment]) -> str:
    """Join fragments on one visual line, inserting spaces at word gaps."""
    line = ""
    prev_end: Optional[float] = None
    total_width = 0.0
    total_chars = 0

    for fragment in sorted(fragments, key=lambda f: f.x):
        text = fragment.text
        if not text:
            continue

        width = fragment.width
        if not width and fragment.size:
            width = abs(fragment.size) * max(len(text), 1)
        if width:
            total_width += width
            total_chars += len(text)

        avg_char_width = total_width / total_chars if total_chars else 0.0

        if prev_end is not None:
            gap = fragment.x - prev_end
            threshold = avg_char_width * SPACE_GAP_FACTOR if avg_char_width else FALLBACK_SPACE_GAP
            if gap > threshold:
                line += " "

        line += text
        if not width:
            width = avg_char_width * len(text) if avg_char_width else len(text) * 3
        prev_end = fragment.x + width

    return line


def reconstruct_lines(fragments: List[TextFragment]) -> List[str]:
    """Group positioned fragments into normalized text lines, top to bottom."""
    if not fragments:
        return []

    ordered = sorted(fragments, key=lambda f: (f.y, f.x))
    threshold = _line_threshold([f.y for f in ordered])

    lines: List[str] = []
    current: List[TextFragment] = []
    current_y = ordered[0].y

    def flush():
        if current:
            text = normalize_character_spacing(join_fragments(current)).strip()
            if text:
                lines.append(text)

    for fragment in ordered:
        if abs(fragment.y - current_y) > threshold:
            flush()
            current = [fragment]
            current_y = fragment.y
        else:
            current.append(fragment)
    flush()

    return lines


def clean_extracted_text(text: str) -> str:
    """Collapse spaces, drop control characters and blank lines."""
    text = text.replace("\r\n", "\n").replace("\r", "\n")
    text = re.sub(r"[ \t]+", " ", text)
    text = re.sub(r"[\x00-\x08\x0b\x0c\x0e-\x1f\x7f-\x9f]", "", text)
    lines = (normalize_character_spacing(line.strip()) for line in text.split("\n"))
    return "\n".join(line for line in lines if line)


def split_columns(line: str) -> List[str]:
    """Split a table row on runs of two or more spaces."""
    return [col.strip() for col in re.split(r"\s{2,}", line) if col.strip()]

