"""Supply projection: how many days the current stock lasts under a dose schedule."""
import logging
from datetime import date, timedelta
from typing import Optional, Sequence

from config import Config
from recurrence import sunday_weekday
from schemas import DoseRule

logger = logging.getLogger(__name__)

MAX_LOOKAHEAD_DAYS = 365
UNLIMITED_SUPPLY_DAYS = 999
# Tolerance for float drift when subtracting fractional doses
STOCK_EPSILON = 1e-9


def project_supply_days(
    current_stock: float,
    dose_rules: Sequence[DoseRule],
    today: Optional[date] = None,
) -> int:
    """
    Simulate the schedule day by day from ``today`` and count covered days.

    A day is covered when all of its doses can be met from the remaining
    stock. Days without doses are covered for free. The count stops at
    ``MAX_LOOKAHEAD_DAYS``, which callers read as "a year or more".

    Returns:
        0 when there is no stock, ``UNLIMITED_SUPPLY_DAYS`` when there is no
        schedule, otherwise the number of whole covered days.
    """
    if current_stock <= 0:
        return 0
    if not dose_rules:
        return UNLIMITED_SUPPLY_DAYS

    start = today or date.today()
    simulated_stock = current_stock
    days_covered = 0

    while days_covered < MAX_LOOKAHEAD_DAYS:
        weekday = sunday_weekday(start + timedelta(days=days_covered))
        for rule in dose_rules:
            if rule.is_active_on(weekday):
                simulated_stock -= rule.quantity
        if simulated_stock < -STOCK_EPSILON:
            break
        days_covered += 1

    logger.debug(
        "projected %d day(s) of supply from stock %s over %d rule(s)",
        days_covered, current_stock, len(dose_rules),
    )
    return days_covered


def format_supply_days(days: int) -> str:
    if days >= MAX_LOOKAHEAD_DAYS:
        return "1+ Year"
    return f"{days} Days"


def supply_text(days: int, current_stock: float, show_days_supply: Optional[bool] = None) -> str:
    """Headline for a medication: days of supply, or the pill count when days are hidden."""
    if show_days_supply is None:
        show_days_supply = Config.SHOW_DAYS_SUPPLY
    if show_days_supply:
        return format_supply_days(days)
    count = int(current_stock) if float(current_stock).is_integer() else current_stock
    return f"{count} Pills"


def needs_refill(days: int, threshold: Optional[int] = None) -> bool:
    """True when the projected supply is below the refill threshold."""
    if threshold is None:
        threshold = Config.REFILL_THRESHOLD_DAYS
    return days < threshold


def stock_percent(current_stock: float, total_stock_level: Optional[float] = None) -> float:
    total = total_stock_level or Config.DEFAULT_TOTAL_STOCK
    return min(current_stock / total * 100, 100.0)


def is_low_stock(current_stock: float, total_stock_level: Optional[float] = None) -> bool:
    total = total_stock_level or Config.DEFAULT_TOTAL_STOCK
    return current_stock <= total * Config.LOW_STOCK_RATIO
