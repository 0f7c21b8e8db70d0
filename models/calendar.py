"""Pydantic view models for the calendar page"""
from decimal import Decimal
from typing import List, Optional

from pydantic import BaseModel, Field

class DaySlot(BaseModel):
    """One cell of the month grid; `day` is None for padding cells."""
    day: Optional[int] = Field(default=None, ge=1, le=31)
    count: int = 0

class MonthRef(BaseModel):
    year: int
    month: int = Field(..., ge=0, le=11, description="Zero-based month index.")

class MonthView(BaseModel):
    year: int
    month: int = Field(..., ge=0, le=11)
    month_name: str
    slots: List[DaySlot]
    total: Decimal
    receipt_count: int
    prev: MonthRef
    next: MonthRef
