import enum
from dataclasses import dataclass
from typing import Optional, Union
from decimal import Decimal

from farealert.services.price_store import StatisticsSnapshot


class DealQuality(str, enum.Enum):
    UNKNOWN = "UNKNOWN"
    POOR = "POOR"
    FAIR = "FAIR"
    GOOD = "GOOD"
    GREAT = "GREAT"
    EXCELLENT = "EXCELLENT"
    EXCEPTIONAL = "EXCEPTIONAL"


# Ordinal scale for quality floors. UNKNOWN is deliberately absent.
QUALITY_RANK = {
    DealQuality.POOR: 0,
    DealQuality.FAIR: 1,
    DealQuality.GOOD: 2,
    DealQuality.GREAT: 3,
    DealQuality.EXCELLENT: 4,
    DealQuality.EXCEPTIONAL: 5,
}

SAVINGS_THRESHOLDS = {
    DealQuality.EXCEPTIONAL: 40,
    DealQuality.EXCELLENT: 30,
    DealQuality.GREAT: 20,
    DealQuality.GOOD: 10,
    DealQuality.FAIR: 0,
}

RECOMMENDATIONS = {
    DealQuality.UNKNOWN: "Not enough historical data to classify this deal",
    DealQuality.EXCEPTIONAL: "🔥 ALL-TIME LOW! Book immediately - prices rarely get this low!",
    DealQuality.EXCELLENT: "⭐ Excellent deal! Book within 24 hours as prices may rise.",
    DealQuality.GREAT: "Great price! This is a solid deal worth booking.",
    DealQuality.GOOD: "Good deal! Consider booking if the dates work for you.",
    DealQuality.FAIR: "Fair price, slightly below average. Could wait for better.",
    DealQuality.POOR: "This is above average pricing. Consider waiting for a better deal.",
}


@dataclass(frozen=True)
class DealClassification:
    quality: DealQuality
    savings_percent: float
    recommendation: str


def parse_quality(value: Optional[str]) -> Optional[DealQuality]:
    """Map a stored quality string to DealQuality; None and unknown strings map to None."""
    if not value:
        return None
    try:
        return DealQuality(value.upper())
    except ValueError:
        return None


def quality_at_least(quality: DealQuality, floor: DealQuality) -> bool:
    if quality not in QUALITY_RANK or floor not in QUALITY_RANK:
        return False
    return QUALITY_RANK[quality] >= QUALITY_RANK[floor]


def classify(price: Union[float, Decimal], stats: Optional[StatisticsSnapshot]) -> DealClassification:
    """
    Grade a price against a destination's statistics snapshot.

    savings_percent is measured against the rolling average. Tiers are checked
    from the top; a price at or below the all-time low is always EXCEPTIONAL.
    Without usable statistics the result is UNKNOWN with zero savings.
    """
    if stats is None or not stats.has_data or stats.avg_90day <= 0:
        return DealClassification(DealQuality.UNKNOWN, 0.0, RECOMMENDATIONS[DealQuality.UNKNOWN])

    price = float(price)
    avg = stats.avg_90day
    savings_percent = ((avg - price) / avg) * 100

    if stats.all_time_low is not None and price <= stats.all_time_low:
        quality = DealQuality.EXCEPTIONAL
    else:
        quality = DealQuality.POOR
        for tier, threshold in SAVINGS_THRESHOLDS.items():
            if savings_percent >= threshold:
                quality = tier
                break

    return DealClassification(quality, savings_percent, RECOMMENDATIONS[quality])
