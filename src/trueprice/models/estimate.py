"""AI fair-value estimate data model."""

from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime


@dataclass(frozen=True)
class AIEstimate:
    """Fair value produced by the language model.

    Attributes:
        fair_value: Model's fair value per share.
        rationale: Free-text explanation returned with the number.
        captured_at: When the model produced the estimate.
        from_cache: True when served from the estimate cache.
    """

    fair_value: float
    rationale: str
    captured_at: datetime
    from_cache: bool = False

    def delta_pct(self, weighted: float) -> float | None:
        """Percent difference versus the weighted fair value, if defined."""
        if weighted == 0:
            return None
        return (self.fair_value - weighted) / weighted * 100
