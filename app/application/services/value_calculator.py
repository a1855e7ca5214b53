import math
from typing import Iterable, Optional

from ...schemas.collection.bag import BagRecord, CollectionValue


def parse_amount(value) -> Optional[float]:
    """Parse a raw price field. None for absent, empty, non-numeric or non-finite input."""
    if value is None:
        return None
    text = str(value).strip()
    if not text:
        return None
    try:
        amount = float(text)
    except ValueError:
        return None
    if not math.isfinite(amount):
        return None
    return amount


def calculate_collection_value(bags: Iterable[BagRecord]) -> CollectionValue:
    total_purchase = 0.0
    total_estimated = 0.0
    tracked = 0
    total = 0

    for bag in bags:
        total += 1
        purchase = parse_amount(bag.purchasePrice)
        estimated = parse_amount(bag.estimatedValue)
        total_purchase += purchase or 0.0
        total_estimated += estimated or 0.0
        if purchase is not None and estimated is not None:
            tracked += 1

    appreciation = total_estimated - total_purchase
    # Negative purchase totals still divide; only an exact zero is guarded
    percent = (appreciation / total_purchase * 100) if total_purchase != 0 else 0.0

    return CollectionValue(
        totalPurchasePrice=total_purchase,
        totalEstimatedValue=total_estimated,
        appreciation=appreciation,
        appreciationPercent=percent,
        trackedCount=tracked,
        totalCount=total,
    )
