"""
In-memory medication ledger.

Holds medications, their dose rules, dose events and refills. Every write
runs under one lock and validates before it mutates, so a stock change is
never visible without its event or refill record and vice versa.
"""
import itertools
import logging
import threading
from datetime import date, datetime
from typing import Dict, List, Optional, Union

from config import Config
from errors import (
    DoseRuleNotFoundError,
    EventNotFoundError,
    InsufficientStockError,
    MedicationNotFoundError,
)
from scheduler import resolve_next_action
from schemas import (
    DoseAction,
    DoseEvent,
    DoseRule,
    DoseRuleCreate,
    Medication,
    MedicationCreate,
    MedicationUpdate,
    NextActionState,
    Refill,
)
from supply import project_supply_days

logger = logging.getLogger(__name__)


class MedicationLedger:
    """Public API used by the HTTP layer to read and change medication state."""

    def __init__(self):
        self._lock = threading.Lock()
        self._medications: Dict[int, Medication] = {}
        self._events: List[DoseEvent] = []
        self._refills: List[Refill] = []
        self._medication_ids = itertools.count(1)
        self._dose_ids = itertools.count(1)
        self._event_ids = itertools.count(1)
        self._refill_ids = itertools.count(1)

    # ------------------------------------------------------------------
    # Medications
    # ------------------------------------------------------------------
    def _get(self, medication_id: int) -> Medication:
        med = self._medications.get(medication_id)
        if med is None:
            raise MedicationNotFoundError(f"medication {medication_id} not found")
        return med

    def _build_rule(self, payload: DoseRuleCreate) -> DoseRule:
        return DoseRule.from_record({
            "id": next(self._dose_ids),
            "time": payload.time,
            "quantity": payload.quantity,
            "days": payload.days,
        })

    def add_medication(self, payload: MedicationCreate) -> Medication:
        with self._lock:
            doses = [self._build_rule(d) for d in payload.doses]
            total = payload.total_stock_level
            if total is None and payload.current_stock > 0:
                total = payload.current_stock
            med = Medication(
                id=next(self._medication_ids),
                name=payload.name,
                description=payload.description,
                unit=payload.unit,
                current_stock=payload.current_stock,
                total_stock_level=total,
                doses=doses,
            )
            self._medications[med.id] = med
        logger.info(f"added medication {med.id} ({med.name}) with {len(doses)} dose rule(s)")
        return med.model_copy(deep=True)

    def get_medication(self, medication_id: int) -> Medication:
        with self._lock:
            return self._get(medication_id).model_copy(deep=True)

    def list_medications(self) -> List[Medication]:
        with self._lock:
            return [m.model_copy(deep=True) for m in self._medications.values()]

    def update_medication(self, medication_id: int, payload: MedicationUpdate) -> Medication:
        changes = payload.model_dump(exclude_unset=True, exclude_none=True)
        with self._lock:
            med = self._get(medication_id)
            updated = med.model_copy(update=changes)
            self._medications[medication_id] = updated
        logger.info(f"updated medication {medication_id}: {sorted(changes)}")
        return updated.model_copy(deep=True)

    def delete_medication(self, medication_id: int) -> None:
        """Delete a medication together with its rules, events and refills."""
        with self._lock:
            self._get(medication_id)
            del self._medications[medication_id]
            self._events = [e for e in self._events if e.medication_id != medication_id]
            self._refills = [r for r in self._refills if r.medication_id != medication_id]
        logger.info(f"deleted medication {medication_id}")

    # ------------------------------------------------------------------
    # Dose rules
    # ------------------------------------------------------------------
    def add_dose_rule(self, medication_id: int, payload: DoseRuleCreate) -> DoseRule:
        with self._lock:
            med = self._get(medication_id)
            rule = self._build_rule(payload)
            med.doses = [*med.doses, rule]
        logger.info(f"added dose rule {rule.id} at {rule.time} to medication {medication_id}")
        return rule

    def remove_dose_rule(self, medication_id: int, dose_rule_id: int) -> None:
        """Remove a rule. Events that referenced it keep the dangling id."""
        with self._lock:
            med = self._get(medication_id)
            remaining = [r for r in med.doses if r.id != dose_rule_id]
            if len(remaining) == len(med.doses):
                raise DoseRuleNotFoundError(f"dose rule {dose_rule_id} not found on medication {medication_id}")
            med.doses = remaining
        logger.info(f"removed dose rule {dose_rule_id} from medication {medication_id}")

    # ------------------------------------------------------------------
    # Dose events
    # ------------------------------------------------------------------
    def record_event(
        self,
        medication_id: int,
        action: Union[DoseAction, str],
        dose_rule_id: Optional[int] = None,
        at: Optional[datetime] = None,
        quantity: Optional[float] = None,
    ) -> DoseEvent:
        """
        Append a dose event and apply its stock change in one step.

        TAKEN and LOST consume ``quantity`` units, falling back to the
        referenced rule's quantity and then to a single unit. Stock never goes
        below zero. SKIPPED leaves stock untouched. A timezone-aware ``at`` is
        converted to naive local time before it is stored.
        """
        action = DoseAction(action)
        if quantity is not None and quantity <= 0:
            raise ValueError("quantity must be positive")
        # Stored timestamps are naive local time
        if at is not None and at.tzinfo is not None:
            at = at.astimezone().replace(tzinfo=None)

        with self._lock:
            med = self._get(medication_id)
            rule = None
            if dose_rule_id is not None:
                rule = next((r for r in med.doses if r.id == dose_rule_id), None)
                if rule is None:
                    raise DoseRuleNotFoundError(f"dose rule {dose_rule_id} not found on medication {medication_id}")

            new_stock = med.current_stock
            if action in (DoseAction.TAKEN, DoseAction.LOST):
                if med.current_stock <= 0:
                    raise InsufficientStockError(f"medication {medication_id} has no stock left")
                used = quantity if quantity is not None else (rule.quantity if rule else 1)
                new_stock = max(med.current_stock - used, 0)

            event = DoseEvent(
                id=next(self._event_ids),
                medication_id=medication_id,
                action=action,
                timestamp=at or datetime.now(),
                dose_rule_id=dose_rule_id,
            )
            self._events.append(event)
            med.current_stock = new_stock

        logger.info(
            f"recorded {action.value} for medication {medication_id} "
            f"(dose rule {dose_rule_id}), stock now {new_stock}"
        )
        return event

    def delete_event(self, event_id: int) -> None:
        """Remove a single event from the history. Stock is not restored."""
        with self._lock:
            remaining = [e for e in self._events if e.id != event_id]
            if len(remaining) == len(self._events):
                raise EventNotFoundError(f"event {event_id} not found")
            self._events = remaining
        logger.info(f"deleted event {event_id}")

    def events(self, medication_id: Optional[int] = None, day: Optional[date] = None) -> List[DoseEvent]:
        with self._lock:
            found = list(self._events)
        if medication_id is not None:
            found = [e for e in found if e.medication_id == medication_id]
        if day is not None:
            found = [e for e in found if e.timestamp.date() == day]
        return found

    def events_for_day(self, medication_id: int, day: date) -> List[DoseEvent]:
        return self.events(medication_id=medication_id, day=day)

    def history(self, limit: Optional[int] = None) -> List[DoseEvent]:
        """Most recent events across all medications, newest first."""
        if limit is None:
            limit = Config.HISTORY_LIMIT
        with self._lock:
            ordered = sorted(self._events, key=lambda e: e.timestamp, reverse=True)
        return ordered[:limit]

    # ------------------------------------------------------------------
    # Refills
    # ------------------------------------------------------------------
    def restock(
        self,
        medication_id: int,
        quantity: float,
        price: Optional[float] = None,
        pharmacy_name: Optional[str] = None,
        at: Optional[datetime] = None,
    ) -> Refill:
        """Add stock and record the purchase in one step."""
        with self._lock:
            med = self._get(medication_id)
            refill = Refill(
                id=next(self._refill_ids),
                medication_id=medication_id,
                quantity=quantity,
                price=price,
                pharmacy_name=pharmacy_name or None,
                refill_date=at or datetime.now(),
            )
            self._refills.append(refill)
            med.current_stock = new_stock = med.current_stock + quantity
        logger.info(f"restocked medication {medication_id} with {quantity}, stock now {new_stock}")
        return refill

    def refills(self, medication_id: Optional[int] = None) -> List[Refill]:
        with self._lock:
            found = list(self._refills)
        if medication_id is not None:
            found = [r for r in found if r.medication_id == medication_id]
        return found

    # ------------------------------------------------------------------
    # Schedule state
    # ------------------------------------------------------------------
    def next_action(self, medication_id: int, now: Optional[datetime] = None) -> NextActionState:
        now = now or datetime.now()
        with self._lock:
            med = self._get(medication_id)
            rules = list(med.doses)
            todays = [e for e in self._events if e.medication_id == medication_id]
        return resolve_next_action(rules, todays, now)

    def supply_days(self, medication_id: int, today: Optional[date] = None) -> int:
        with self._lock:
            med = self._get(medication_id)
            stock, rules = med.current_stock, list(med.doses)
        return project_supply_days(stock, rules, today)
