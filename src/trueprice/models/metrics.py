"""Valuation metrics data model."""

from __future__ import annotations

from dataclasses import asdict, dataclass
from typing import Any

EV_WEIGHT = 0.5
PE_WEIGHT = 0.25
PS_WEIGHT = 0.25


@dataclass(frozen=True)
class ValuationMetrics:
    """Per-share fair-value multiples and margins for one symbol.

    Attributes:
        price: Current price.
        fair_ev: Enterprise-value based fair value per share.
        fair_pe: Forward-earnings based fair value per share.
        fair_ps: Sales based fair value per share.
        book_value: Book value per share (most recent quarter).
        gross_margin: Gross margin in percent.
        net_margin: Net (profit) margin in percent.
        op_margin: Operating margin in percent.
        currency: Currency code the values are quoted in.
    """

    price: float
    fair_ev: float
    fair_pe: float
    fair_ps: float
    book_value: float
    gross_margin: float
    net_margin: float
    op_margin: float
    currency: str

    @property
    def weighted(self) -> float:
        """Blended fair value: 50% EV, 25% PE, 25% PS."""
        return (
            self.fair_ev * EV_WEIGHT
            + self.fair_pe * PE_WEIGHT
            + self.fair_ps * PS_WEIGHT
        )

    @classmethod
    def zero(cls, currency: str) -> ValuationMetrics:
        """All-zero metrics, used when no API credential is configured."""
        return cls(
            price=0.0, fair_ev=0.0, fair_pe=0.0, fair_ps=0.0, book_value=0.0,
            gross_margin=0.0, net_margin=0.0, op_margin=0.0, currency=currency,
        )

    def to_dict(self) -> dict[str, Any]:
        data = asdict(self)
        data["weighted"] = self.weighted
        return data

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> ValuationMetrics:
        # ``weighted`` is always recomputed from the multiples.
        return cls(
            price=float(data["price"]),
            fair_ev=float(data["fair_ev"]),
            fair_pe=float(data["fair_pe"]),
            fair_ps=float(data["fair_ps"]),
            book_value=float(data["book_value"]),
            gross_margin=float(data["gross_margin"]),
            net_margin=float(data["net_margin"]),
            op_margin=float(data["op_margin"]),
            currency=str(data["currency"]),
        )
