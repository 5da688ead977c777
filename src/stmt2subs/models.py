from __future__ import annotations

from dataclasses import dataclass, field
from typing import TYPE_CHECKING, Any, Literal

from stmt2subs.normalizers.names import merchant_key

if TYPE_CHECKING:
    from stmt2subs.rules import ExtractionRules

Source = Literal["pdf", "csv"]


@dataclass(frozen=True)
class CancelLink:
    url: str
    label: str
    kind: str = "direct"  # direct | search


@dataclass
class Candidate:
    name: str
    amount: float
    source: Source
    interval: str = "month"
    subscription_id: str | None = None
    cancel: CancelLink | None = None
    raw_line: str | None = None

    def key(self, rules: ExtractionRules | None = None) -> str:
        """Merchant key, reading domain dots from the source line."""
        return merchant_key(self.name, rules, source=self.raw_line or self.name)

    def to_body(self, category_id: str) -> dict[str, Any]:
        """Creation payload for the subscription store."""
        return {
            "name": self.name,
            "price": self.amount,
            "category": category_id,
            "interval": self.interval,
        }


@dataclass(frozen=True)
class ExistingSubscription:
    id: str
    name: str
    price: float
    interval: str = "month"
    active: bool = True

    @classmethod
    def from_record(cls, record: dict[str, Any]) -> "ExistingSubscription":
        """Accept both ``id`` and Mongo-style ``_id`` records."""
        price = record.get("price")
        try:
            price_value = float(price) if price is not None else 0.0
        except (TypeError, ValueError):
            price_value = 0.0
        return cls(
            id=str(record.get("id") or record.get("_id") or ""),
            name=str(record.get("name") or ""),
            price=price_value,
            interval=str(record.get("interval") or "month"),
            active=bool(record.get("active", True)),
        )


@dataclass
class ImportResult:
    candidates: list[Candidate]
    created_count: int = 0
    skipped_count: int = 0
    # Subset of skipped_count: candidates already tracked before the import.
    existing_count: int = 0
    failures: list[str] = field(default_factory=list)

    def summary(self) -> dict[str, int]:
        return {"created": self.created_count, "skipped": self.skipped_count}
