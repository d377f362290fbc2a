from __future__ import annotations

from typing import Literal
from pydantic import BaseModel, Field


# ---- Base + envelope ----

class BaseEvent(BaseModel):
    event_type: str
    ts: int
    vault: str = "default"
    account: str
    amount: int = Field(gt=0)
    balance: int = Field(ge=0)  # account balance after the operation


class EventEnvelope(BaseModel):
    schema_version: str = "v1"
    correlation_id: str
    sequence: int = 0
    event: BaseEvent


# ---- Event types ----

class Deposit(BaseEvent):
    event_type: Literal["deposit"] = "deposit"


class Withdrawal(BaseEvent):
    event_type: Literal["withdrawal"] = "withdrawal"

