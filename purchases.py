"""Purchase history: refills grouped per medication with best-price flags."""
from typing import Any, Dict, List, Mapping, Optional, Sequence

from schemas import Medication, Refill
from supply import is_low_stock

# Tolerance when comparing unit prices
PRICE_EPSILON = 0.001


def unit_price(refill: Refill) -> Optional[float]:
    if refill.price and refill.quantity:
        return refill.price / refill.quantity
    return None


def purchase_history(
    refills: Sequence[Refill],
    medication_names: Mapping[int, str],
) -> List[Dict[str, Any]]:
    """
    Group refills by medication name, newest first within each group.

    Each entry carries its ``unit_price`` and an ``is_best_price`` flag set
    when it matches the lowest unit price paid for that medication. Refills
    without a price are never flagged.
    """
    lowest: Dict[int, float] = {}
    for r in refills:
        price = unit_price(r)
        if price is not None and (r.medication_id not in lowest or price < lowest[r.medication_id]):
            lowest[r.medication_id] = price

    sections: Dict[str, List[Dict[str, Any]]] = {}
    for r in sorted(refills, key=lambda x: x.refill_date, reverse=True):
        name = medication_names.get(r.medication_id) or "Unknown"
        price = unit_price(r)
        best = price is not None and price <= lowest[r.medication_id] + PRICE_EPSILON
        entry = r.model_dump()
        entry.update({"unit_price": price, "is_best_price": best})
        sections.setdefault(name, []).append(entry)

    return [{"title": title, "data": data} for title, data in sections.items()]


def low_stock_medications(medications: Sequence[Medication]) -> List[Medication]:
    """Medications that belong on the pharmacy refill list."""
    return [m for m in medications if is_low_stock(m.current_stock, m.total_stock_level)]
