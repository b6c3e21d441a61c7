from typing import Tuple

# Distinct chart colors, one per unit position. Cycles past the end.
CHART_COLORS: Tuple[str, ...] = (
    "#3B82F6",  # blue
    "#10B981",  # green
    "#F59E0B",  # amber
    "#EF4444",  # red
    "#8B5CF6",  # purple
    "#EC4899",  # pink
    "#14B8A6",  # teal
    "#F97316",  # orange
    "#6366F1",  # indigo
    "#84CC16",  # lime
    "#06B6D4",  # cyan
    "#F43F5E",  # rose
    "#A855F7",  # violet
    "#22C55E",  # green-500
    "#FBBF24",  # yellow
)


def color_for_index(index: int) -> str:
    """Color for the unit at 0-based position `index` in name order."""
    if index < 0:
        raise ValueError("index must be non-negative")
    return CHART_COLORS[index % len(CHART_COLORS)]
