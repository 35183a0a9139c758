from __future__ import annotations

import re
from dataclasses import dataclass, field
from typing import Iterable, List

from taxation.config import LayoutConfig

_SPACE_RUN = re.compile(r"\s+")


@dataclass(frozen=True)
class Fragment:
    """A positioned run of text. ``y`` grows upward (PDF space)."""

    text: str
    x: float
    y: float
    width: float

    @property
    def center_x(self) -> float:
        return self.x + self.width / 2.0


@dataclass
class Line:
    y: float
    fragments: List[Fragment] = field(default_factory=list)


def fragments_from_page(page, config: LayoutConfig) -> List[Fragment]:
    """Convert pdfplumber words into fragments with a bottom-up y axis.

    Blank characters are kept inside words so that a phrase printed as one
    run stays one fragment and its centre lands in a single column.
    """
    words = page.extract_words(
        x_tolerance=config.word_x_tolerance,
        y_tolerance=config.line_y_tolerance,
        keep_blank_chars=True,
        use_text_flow=False,
    )
    height = float(page.height)
    fragments: List[Fragment] = []
    for word in words:
        text = str(word.get("text", "")).strip()
        if not text:
            continue
        x0 = float(word.get("x0", 0.0))
        x1 = float(word.get("x1", x0))
        bottom = float(word.get("bottom", 0.0))
        fragments.append(Fragment(text=text, x=x0, y=height - bottom, width=max(x1 - x0, 0.0)))
    return fragments


def group_lines(fragments: Iterable[Fragment], y_tolerance: float) -> List[Line]:
    items = [f for f in fragments if f.text.strip()]
    if not items:
        return []
    items.sort(key=lambda f: (-f.y, f.x))
    lines: List[Line] = []
    for fragment in items:
        # Sorted top-down, so only the newest line can be within tolerance.
        if lines and abs(lines[-1].y - fragment.y) <= y_tolerance:
            lines[-1].fragments.append(fragment)
        else:
            lines.append(Line(y=fragment.y, fragments=[fragment]))
    for line in lines:
        line.fragments.sort(key=lambda f: f.x)
    return lines


def line_text(line: Line, word_gap: float) -> str:
    parts: List[str] = []
    prev_x = None
    for fragment in line.fragments:
        if prev_x is not None and fragment.x - prev_x > word_gap:
            parts.append(" ")
        parts.append(fragment.text)
        prev_x = fragment.x
    return _SPACE_RUN.sub(" ", "".join(parts)).strip()
