"""Next-action resolution and the per-day dose schedule."""
import logging
from datetime import date, datetime
from typing import Any, Dict, List, Sequence

from recurrence import describe, parse_time, sunday_weekday
from schemas import DoseAction, DoseEvent, DoseRule, Medication, NextActionState

logger = logging.getLogger(__name__)


def format_quantity(quantity: float) -> str:
    if float(quantity).is_integer():
        return str(int(quantity))
    return str(quantity)


def _same_day(timestamp: datetime, now: datetime) -> bool:
    if timestamp.tzinfo is not None and now.tzinfo is not None:
        timestamp = timestamp.astimezone(now.tzinfo)
    return timestamp.date() == now.date()


def active_rules_on(dose_rules: Sequence[DoseRule], weekday: int) -> List[DoseRule]:
    """Rules firing on ``weekday`` (0=Sunday), in time order."""
    return sorted((r for r in dose_rules if r.is_active_on(weekday)), key=lambda r: r.time)


def _next_pending_rule(todays_rules: List[DoseRule], handled: List[DoseEvent]) -> DoseRule:
    # Events naming one of today's open slots close that slot; the rest close
    # the earliest open slots in time order.
    pending = list(todays_rules)
    unmatched = 0
    for event in handled:
        idx = next(
            (i for i, r in enumerate(pending) if event.dose_rule_id is not None and r.id == event.dose_rule_id),
            None,
        )
        if idx is None:
            unmatched += 1
        else:
            del pending[idx]
    return pending[unmatched]


def resolve_next_action(
    dose_rules: Sequence[DoseRule],
    todays_events: Sequence[DoseEvent],
    now: datetime,
) -> NextActionState:
    """
    Work out what the user should do next for one medication.

    Args:
        dose_rules: The medication's dose rules.
        todays_events: Events recorded for the medication. Events from other
            days are ignored, and so are LOST events: a lost pill leaves the
            scheduled dose outstanding.
        now: The instant to evaluate at.

    Returns:
        The pending dose for today (flagged overdue once its time has passed),
        tomorrow's first dose when today is complete, or an "All Done" state
        with no target when there is no schedule at all.
    """
    handled = [
        e for e in todays_events
        if e.action != DoseAction.LOST and _same_day(e.timestamp, now)
    ]
    ordered = sorted(dose_rules, key=lambda r: r.time)
    todays_rules = active_rules_on(ordered, sunday_weekday(now.date()))

    if len(handled) >= len(todays_rules):
        if ordered:
            first = ordered[0]
            return NextActionState(
                label=f"Next: {format_quantity(first.quantity)} Pill(s)",
                sublabel=f"Tomorrow {first.time}",
                is_overdue=False,
                is_upcoming_tomorrow=True,
                target_dose_rule=first,
            )
        return NextActionState(label="All Done", sublabel="Relax")

    next_rule = _next_pending_rule(todays_rules, handled)
    scheduled_at = datetime.combine(now.date(), parse_time(next_rule.time), tzinfo=now.tzinfo)
    is_overdue = now > scheduled_at
    logger.debug(
        "dose rule %s at %s is next (%d of %d handled, overdue=%s)",
        next_rule.id, next_rule.time, len(handled), len(todays_rules), is_overdue,
    )

    qty = format_quantity(next_rule.quantity)
    if is_overdue:
        return NextActionState(
            label=f"Take {qty} (Overdue)",
            sublabel=f"{next_rule.time} Today",
            is_overdue=True,
            target_dose_rule=next_rule,
        )
    return NextActionState(
        label=f"Take {qty}",
        sublabel=f"at {next_rule.time}",
        is_overdue=False,
        target_dose_rule=next_rule,
    )


def daily_schedule(medications: Sequence[Medication], day: date) -> List[Dict[str, Any]]:
    """All doses due on ``day`` across medications, sorted by time."""
    weekday = sunday_weekday(day)
    items: List[Dict[str, Any]] = []
    for med in medications:
        for rule in active_rules_on(med.doses, weekday):
            items.append({
                "medication_id": med.id,
                "name": med.name,
                "dose_rule_id": rule.id,
                "time": rule.time,
                "quantity": rule.quantity,
                "repeat": describe(rule.recurrence),
            })
    items.sort(key=lambda x: x["time"])
    return items
