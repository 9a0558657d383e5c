"""
Schedule slot model.

A slot is administrator-configured; the scheduler guard only ever touches
its ``last_fired`` / ``last_fired_date`` stamp. ``last_fired_date`` is the
local calendar date (configured timezone) of the last firing and is the
column the guard's compare-and-swap claim is made on.
"""

from __future__ import annotations

from datetime import date, datetime
from typing import Optional

from pydantic import BaseModel, ConfigDict, field_validator

from uotd.utils.time_utils import parse_slot_time

class ScheduleSlot(BaseModel):
    """One recurring announcement slot.

    Attributes:
        slot_key: Slot name, e.g. ``"breakfast"``.
        enabled: Disabled slots are never considered.
        uniform_id: Catalog uniform to announce, or ``None``.
        time: Local ``"HH:MM"`` (``"HHMM"`` accepted) or ``None``.
        last_fired: UTC instant of the last firing.
        last_fired_date: Local date of the last firing.
    """

    model_config = ConfigDict(frozen=True)

    slot_key: str
    enabled: bool = False
    uniform_id: Optional[str] = None
    time: Optional[str] = None
    last_fired: Optional[datetime] = None
    last_fired_date: Optional[date] = None

    @field_validator("time")
    @classmethod
    def validate_time(cls, v: Optional[str]) -> Optional[str]:
        if v is None or v == "":
            return None
        if parse_slot_time(v) is None:
            raise ValueError(f"Slot time must be 'HH:MM', got '{v}'.")
        return v

    @property
    def slot_time(self) -> Optional[tuple[int, int]]:
        """Parsed ``(hour, minute)``, or ``None`` when unset."""
        return parse_slot_time(self.time)
