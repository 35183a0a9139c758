from __future__ import annotations

import os
from dataclasses import dataclass

LINE_Y_TOLERANCE_DEFAULT = 2.0
WORD_GAP_DEFAULT = 8.0
WORD_X_TOLERANCE_DEFAULT = 1.5
RULER_MIN_ANCHORS_DEFAULT = 18
FALLBACK_MIN_ANCHORS_DEFAULT = 10
FALLBACK_X_TOLERANCE_DEFAULT = 1.5
MAX_ANCHOR_DISTANCE_DEFAULT = 18.0
CELL_TEXT_LIMIT_DEFAULT = 32000


@dataclass(frozen=True)
class LayoutConfig:
    """Geometry thresholds for one report layout.

    All distances are in PDF points. ``max_anchor_distance`` decides when a
    fragment is too far from every column anchor and goes to the overflow
    slot instead.
    """

    line_y_tolerance: float = LINE_Y_TOLERANCE_DEFAULT
    word_gap: float = WORD_GAP_DEFAULT
    word_x_tolerance: float = WORD_X_TOLERANCE_DEFAULT
    ruler_min_anchors: int = RULER_MIN_ANCHORS_DEFAULT
    fallback_min_anchors: int = FALLBACK_MIN_ANCHORS_DEFAULT
    fallback_x_tolerance: float = FALLBACK_X_TOLERANCE_DEFAULT
    max_anchor_distance: float = MAX_ANCHOR_DISTANCE_DEFAULT
    cell_text_limit: int = CELL_TEXT_LIMIT_DEFAULT


def _int_env(name: str, default: int) -> int:
    raw = os.getenv(name, "").strip()
    if not raw:
        return default
    try:
        return int(raw)
    except ValueError:
        return default


def _float_env(name: str, default: float) -> float:
    raw = os.getenv(name, "").strip()
    if not raw:
        return default
    try:
        return float(raw)
    except ValueError:
        return default


def load_layout_config() -> LayoutConfig:
    return LayoutConfig(
        line_y_tolerance=max(_float_env("TAXATION_LINE_Y_TOLERANCE", LINE_Y_TOLERANCE_DEFAULT), 0.0),
        word_gap=max(_float_env("TAXATION_WORD_GAP", WORD_GAP_DEFAULT), 0.0),
        word_x_tolerance=max(_float_env("TAXATION_WORD_X_TOLERANCE", WORD_X_TOLERANCE_DEFAULT), 0.0),
        ruler_min_anchors=min(max(_int_env("TAXATION_RULER_MIN_ANCHORS", RULER_MIN_ANCHORS_DEFAULT), 1), 24),
        fallback_min_anchors=min(max(_int_env("TAXATION_FALLBACK_MIN_ANCHORS", FALLBACK_MIN_ANCHORS_DEFAULT), 1), 24),
        fallback_x_tolerance=max(_float_env("TAXATION_FALLBACK_X_TOLERANCE", FALLBACK_X_TOLERANCE_DEFAULT), 0.0),
        max_anchor_distance=max(_float_env("TAXATION_MAX_ANCHOR_DISTANCE", MAX_ANCHOR_DISTANCE_DEFAULT), 0.0),
        cell_text_limit=max(_int_env("TAXATION_CELL_TEXT_LIMIT", CELL_TEXT_LIMIT_DEFAULT), 1),
    )
