import logging
from datetime import datetime, date as dt_date
from typing import List, Optional

from fastapi import Depends, FastAPI, Request, status
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from pydantic import BaseModel, Field

from config import Config
from errors import (
    DoseRuleNotFoundError,
    EventNotFoundError,
    InsufficientStockError,
    MedicationNotFoundError,
    ScheduleDataError,
)
from ledger import MedicationLedger
from purchases import low_stock_medications, purchase_history
from recurrence import sunday_weekday
from scheduler import daily_schedule, resolve_next_action
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
from supply import format_supply_days, needs_refill, project_supply_days, stock_percent, supply_text

logging.basicConfig(
    level=getattr(logging, Config.LOG_LEVEL, logging.INFO),
    format="%(asctime)s %(levelname)-8s %(name)s: %(message)s",
)
logger = logging.getLogger(__name__)

app = FastAPI(title="Pill Tracker API")

app.add_middleware(
    CORSMiddleware,
    allow_origins=[Config.FRONTEND_URL] if Config.FRONTEND_URL else ["*"],
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)

ledger = MedicationLedger()


def get_ledger() -> MedicationLedger:
    return ledger


# Exception handlers

@app.exception_handler(ScheduleDataError)
async def schedule_data_error_handler(request: Request, exc: ScheduleDataError):
    logger.warning(f"invalid schedule data: {exc}")
    return JSONResponse(status_code=status.HTTP_422_UNPROCESSABLE_ENTITY, content={"error": str(exc)})


@app.exception_handler(InsufficientStockError)
async def insufficient_stock_handler(request: Request, exc: InsufficientStockError):
    return JSONResponse(status_code=status.HTTP_409_CONFLICT, content={"error": str(exc)})


async def not_found_handler(request: Request, exc: LookupError):
    return JSONResponse(status_code=status.HTTP_404_NOT_FOUND, content={"error": str(exc)})


for _missing in (MedicationNotFoundError, DoseRuleNotFoundError, EventNotFoundError):
    app.add_exception_handler(_missing, not_found_handler)


@app.exception_handler(Exception)
async def unhandled_exception_handler(request: Request, exc: Exception):
    logger.error(f"unhandled error on {request.url.path}: {exc}", exc_info=True)
    return JSONResponse(
        status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
        content={"error": "Internal server error"},
    )


@app.get("/")
def read_root():
    return {"message": "Pill Tracker Backend Running"}


@app.get("/health")
def health(store: MedicationLedger = Depends(get_ledger)):
    return {"status": "healthy", "medications": len(store.list_medications())}


# Helper models
class MedicationOut(Medication):
    days_left: int
    supply_label: str
    needs_refill: bool
    stock_percent: float
    next_action: NextActionState


class EventCreate(BaseModel):
    action: DoseAction
    dose_rule_id: Optional[int] = None
    timestamp: Optional[datetime] = None
    quantity: Optional[float] = Field(None, gt=0, description="Units consumed; defaults to the dose rule quantity")


class RestockCreate(BaseModel):
    quantity: float = Field(..., gt=0, description="Units added")
    price: Optional[float] = Field(None, ge=0, description="Total price paid")
    pharmacy_name: Optional[str] = None


class SupplyOut(BaseModel):
    medication_id: int
    current_stock: float
    days_left: int
    supply_label: str
    needs_refill: bool


def _medication_out(med: Medication, events: List[DoseEvent], now: datetime) -> MedicationOut:
    days_left = project_supply_days(med.current_stock, med.doses, now.date())
    return MedicationOut(
        **med.model_dump(),
        days_left=days_left,
        supply_label=supply_text(days_left, med.current_stock),
        needs_refill=needs_refill(days_left),
        stock_percent=stock_percent(med.current_stock, med.total_stock_level),
        next_action=resolve_next_action(med.doses, events, now),
    )


# Medications
@app.post("/api/medications", response_model=dict, status_code=status.HTTP_201_CREATED)
async def create_medication(payload: MedicationCreate, store: MedicationLedger = Depends(get_ledger)):
    med = store.add_medication(payload)
    return {"id": med.id}


@app.get("/api/medications", response_model=List[MedicationOut])
async def list_medications(store: MedicationLedger = Depends(get_ledger)):
    now = datetime.now()
    return [
        _medication_out(m, store.events_for_day(m.id, now.date()), now)
        for m in store.list_medications()
    ]


@app.get("/api/medications/{medication_id}", response_model=MedicationOut)
async def get_medication(medication_id: int, store: MedicationLedger = Depends(get_ledger)):
    now = datetime.now()
    med = store.get_medication(medication_id)
    return _medication_out(med, store.events_for_day(medication_id, now.date()), now)


@app.patch("/api/medications/{medication_id}", response_model=Medication)
async def update_medication(
    medication_id: int, payload: MedicationUpdate, store: MedicationLedger = Depends(get_ledger)
):
    return store.update_medication(medication_id, payload)


@app.delete("/api/medications/{medication_id}", status_code=status.HTTP_204_NO_CONTENT)
async def delete_medication(medication_id: int, store: MedicationLedger = Depends(get_ledger)):
    store.delete_medication(medication_id)


# Dose rules
@app.post("/api/medications/{medication_id}/doses", response_model=DoseRule, status_code=status.HTTP_201_CREATED)
async def add_dose_rule(medication_id: int, payload: DoseRuleCreate, store: MedicationLedger = Depends(get_ledger)):
    return store.add_dose_rule(medication_id, payload)


@app.delete("/api/medications/{medication_id}/doses/{dose_rule_id}", status_code=status.HTTP_204_NO_CONTENT)
async def remove_dose_rule(medication_id: int, dose_rule_id: int, store: MedicationLedger = Depends(get_ledger)):
    store.remove_dose_rule(medication_id, dose_rule_id)


# Dose events
@app.post("/api/medications/{medication_id}/events", response_model=DoseEvent, status_code=status.HTTP_201_CREATED)
async def record_event(medication_id: int, payload: EventCreate, store: MedicationLedger = Depends(get_ledger)):
    return store.record_event(
        medication_id,
        payload.action,
        dose_rule_id=payload.dose_rule_id,
        at=payload.timestamp,
        quantity=payload.quantity,
    )


@app.get("/api/events", response_model=List[DoseEvent])
async def list_events(
    medication_id: Optional[int] = None,
    date: Optional[dt_date] = None,
    limit: Optional[int] = None,
    store: MedicationLedger = Depends(get_ledger),
):
    if medication_id is None and date is None:
        return store.history(limit)
    events = sorted(store.events(medication_id, date), key=lambda e: e.timestamp, reverse=True)
    return events[:limit] if limit is not None else events


@app.delete("/api/events/{event_id}", status_code=status.HTTP_204_NO_CONTENT)
async def delete_event(event_id: int, store: MedicationLedger = Depends(get_ledger)):
    store.delete_event(event_id)


# Inventory
@app.post("/api/medications/{medication_id}/restock", response_model=Refill, status_code=status.HTTP_201_CREATED)
async def restock(medication_id: int, payload: RestockCreate, store: MedicationLedger = Depends(get_ledger)):
    return store.restock(
        medication_id,
        payload.quantity,
        price=payload.price,
        pharmacy_name=payload.pharmacy_name,
    )


@app.get("/api/medications/{medication_id}/next-action", response_model=NextActionState)
async def next_action(
    medication_id: int, at: Optional[datetime] = None, store: MedicationLedger = Depends(get_ledger)
):
    return store.next_action(medication_id, at)


@app.get("/api/medications/{medication_id}/supply", response_model=SupplyOut)
async def supply(medication_id: int, on: Optional[dt_date] = None, store: MedicationLedger = Depends(get_ledger)):
    med = store.get_medication(medication_id)
    days_left = store.supply_days(medication_id, on)
    return SupplyOut(
        medication_id=medication_id,
        current_stock=med.current_stock,
        days_left=days_left,
        supply_label=format_supply_days(days_left),
        needs_refill=needs_refill(days_left),
    )


@app.get("/api/purchases")
async def list_purchases(store: MedicationLedger = Depends(get_ledger)):
    names = {m.id: m.name for m in store.list_medications()}
    return purchase_history(store.refills(), names)


@app.get("/api/low-stock", response_model=List[Medication])
async def low_stock(store: MedicationLedger = Depends(get_ledger)):
    return low_stock_medications(store.list_medications())


# Schedule endpoint for a given date
@app.get("/api/schedule")
async def get_schedule(date: Optional[dt_date] = None, store: MedicationLedger = Depends(get_ledger)):
    target = date or dt_date.today()
    items = daily_schedule(store.list_medications(), target)
    return {"date": target.isoformat(), "weekday": sunday_weekday(target), "items": items}


if __name__ == "__main__":
    import uvicorn
    Config.validate()
    uvicorn.run(app, host="0.0.0.0", port=Config.PORT)
