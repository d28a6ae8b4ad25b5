import pytest
from datetime import datetime

from purchases import low_stock_medications, purchase_history, unit_price
from schemas import Medication, Refill


def refill(refill_id, med_id, qty, price, day):
    return Refill(id=refill_id, medication_id=med_id, quantity=qty, price=price, refill_date=datetime(2024, 1, day))


def test_unit_price():
    assert unit_price(refill(1, 1, 30, 15.0, 1)) == 0.5
    assert unit_price(refill(2, 1, 30, None, 1)) is None


def test_purchase_history_groups_and_flags_best_price():
    refills = [
        refill(1, 1, 30, 15.0, 1),   # 0.50 per unit
        refill(2, 1, 60, 24.0, 10),  # 0.40 per unit
        refill(3, 2, 10, None, 5),
        refill(4, 1, 20, 8.0, 20),   # 0.40 per unit
    ]
    sections = purchase_history(refills, {1: "Aspirin", 2: "Vitamin D"})
    by_title = {s["title"]: s["data"] for s in sections}

    aspirin = by_title["Aspirin"]
    assert [e["id"] for e in aspirin] == [4, 2, 1]
    assert [e["is_best_price"] for e in aspirin] == [True, True, False]
    assert aspirin[0]["unit_price"] == pytest.approx(0.4)

    vitamin = by_title["Vitamin D"]
    assert vitamin[0]["is_best_price"] is False
    assert vitamin[0]["unit_price"] is None


def test_purchase_history_unknown_medication():
    sections = purchase_history([refill(1, 9, 10, 5.0, 1)], {})
    assert sections[0]["title"] == "Unknown"


def test_purchase_history_empty():
    assert purchase_history([], {}) == []


def test_low_stock_medications():
    meds = [
        Medication(id=1, name="Aspirin", current_stock=5, total_stock_level=30),
        Medication(id=2, name="Vitamin D", current_stock=25, total_stock_level=30),
        Medication(id=3, name="Unsized", current_stock=15),
    ]
    assert [m.id for m in low_stock_medications(meds)] == [1, 3]


if __name__ == "__main__":
    pytest.main([__file__])
