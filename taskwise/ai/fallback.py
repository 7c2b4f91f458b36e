from datetime import date
from typing import Mapping, Optional

from .. import config


def fallback_priority_score(
    importance: Optional[int],
    deadline: Optional[date],
    category: Optional[str],
    today: Optional[date] = None,
    multipliers: Optional[Mapping[str, float]] = None,
) -> int:
    """Deterministic priority score used when the model is unavailable.

    importance * 8 gives the base; a deadline within ten days adds up to 20
    points of urgency (overdue counts as the full 20), scaled by the
    category's multiplier. The result is clamped to 1..100.
    """
    if importance is None:
        importance = 5
    multipliers = config.CATEGORY_MULTIPLIERS if multipliers is None else multipliers
    today = today or date.today()

    base = importance * 8
    urgency = 0
    if deadline is not None:
        days = (deadline - today).days
        urgency = max(0, min(20, 20 - 2 * days))
    weight = multipliers.get(category or '', 1.0)
    score = round(base + urgency * weight)
    return max(1, min(100, score))
