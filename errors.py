"""Exceptions raised by the scheduling core and the medication ledger."""


class ScheduleDataError(ValueError):
    """A dose rule carries a weekday set or time string that cannot be parsed."""


class InsufficientStockError(ValueError):
    """A dose was recorded against a medication with no stock left."""


class MedicationNotFoundError(LookupError):
    pass


class DoseRuleNotFoundError(LookupError):
    pass


class EventNotFoundError(LookupError):
    pass
