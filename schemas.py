"""
Data schemas for the Pill Tracker.

Each model mirrors a record kept by the medication ledger. Dose rules use the
recurrence types from ``recurrence.py``; weekday sets only exist in their
textual form at the boundary (``DoseRule.from_record`` / ``DoseRule.days``).
"""
from datetime import datetime
from enum import Enum
from typing import Any, Dict, List, Optional

from pydantic import BaseModel, ConfigDict, Field

from recurrence import TIME_PATTERN, Daily, Recurrence, parse_days, parse_time, serialize_days


class DoseAction(str, Enum):
    TAKEN = "TAKEN"
    SKIPPED = "SKIPPED"
    LOST = "LOST"


class Unit(str, Enum):
    MG = "mg"
    ML = "ml"
    NOS = "nos"


class DoseRule(BaseModel):
    """One scheduled administration time of a medication.

    ``from_record`` is the validated boundary for stored or user-supplied
    rows and raises ``ScheduleDataError`` on a bad time or weekday set.
    Constructing the model directly with bad values raises pydantic's
    ``ValidationError`` instead.
    """
    model_config = ConfigDict(frozen=True)

    id: int = Field(..., description="Stable identifier assigned at creation")
    time: str = Field(..., pattern=TIME_PATTERN, description="Time of day in HH:MM 24h format")
    quantity: float = Field(1.0, gt=0, description="Units consumed at this time")
    recurrence: Recurrence = Field(default_factory=Daily)

    @classmethod
    def from_record(cls, record: Dict[str, Any]) -> "DoseRule":
        """Build a rule from a stored row with a textual ``days`` column.

        Raises ``ScheduleDataError`` for a malformed time or weekday set.
        """
        parse_time(record.get("time"))
        return cls(
            id=record["id"],
            time=record["time"],
            quantity=record.get("quantity", record.get("qty", 1.0)),
            recurrence=parse_days(record.get("days")),
        )

    @property
    def days(self) -> Optional[str]:
        return serialize_days(self.recurrence)

    def is_active_on(self, weekday: int) -> bool:
        return self.recurrence.is_active_on(weekday)


class DoseEvent(BaseModel):
    """Immutable record of an action against a medication."""
    model_config = ConfigDict(frozen=True)

    id: Optional[int] = None
    medication_id: Optional[int] = None
    action: DoseAction
    timestamp: datetime
    dose_rule_id: Optional[int] = Field(None, description="Dose rule this event fulfils, if any")


class Medication(BaseModel):
    """A medication with its stock and dose schedule."""
    id: int
    name: str = Field(..., description="Medication name")
    description: Optional[str] = None
    unit: Unit = Unit.NOS
    current_stock: float = Field(0, ge=0, description="Units on hand")
    total_stock_level: Optional[float] = Field(None, description="Full-pack level, used for the stock bar only")
    created_at: datetime = Field(default_factory=datetime.now)
    doses: List[DoseRule] = Field(default_factory=list)


class Refill(BaseModel):
    """A purchase that added stock to a medication."""
    model_config = ConfigDict(frozen=True)

    id: int
    medication_id: int
    quantity: float = Field(..., gt=0, description="Units added")
    price: Optional[float] = Field(None, ge=0, description="Total price paid")
    pharmacy_name: Optional[str] = None
    refill_date: datetime = Field(default_factory=datetime.now)


class NextActionState(BaseModel):
    label: str
    sublabel: str
    is_overdue: bool = False
    is_upcoming_tomorrow: bool = False
    target_dose_rule: Optional[DoseRule] = None


# Input models

class DoseRuleCreate(BaseModel):
    time: str = Field(..., description="Time of day in HH:MM 24h format")
    quantity: float = Field(1.0, gt=0)
    days: Optional[List[int]] = Field(None, description="Weekdays (0=Sun..6=Sat); null means every day")


class MedicationCreate(BaseModel):
    name: str
    description: Optional[str] = None
    unit: Unit = Unit.NOS
    current_stock: float = Field(0, ge=0)
    total_stock_level: Optional[float] = Field(None, gt=0)
    doses: List[DoseRuleCreate] = Field(default_factory=list)


class MedicationUpdate(BaseModel):
    name: Optional[str] = None
    description: Optional[str] = None
    unit: Optional[Unit] = None
    total_stock_level: Optional[float] = Field(None, gt=0)
