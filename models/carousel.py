"""Pydantic view models for the day page carousel"""
from decimal import Decimal
from enum import Enum
from typing import List, Literal, Optional

from pydantic import BaseModel

from models.receipt import Receipt

class CarouselState(str, Enum):
    UNLOADED = "unloaded"
    EMPTY = "empty"
    WINDOWED = "windowed"

class CarouselView(BaseModel):
    """What the day page needs to draw the carousel."""
    state: CarouselState
    focus_index: Optional[int] = None
    window_start: int = 0
    visible: List[Receipt] = []
    focused: Optional[Receipt] = None
    can_prev: bool = False
    can_next: bool = False
    count: int = 0
    total: Decimal = Decimal("0.00")

class DayView(BaseModel):
    date: str
    day: int
    month: int
    month_name: str
    year: int
    carousel: CarouselView

class ReceiptMutationResult(BaseModel):
    """Outcome of an add or delete on the day page."""
    status: Literal["added", "deleted", "ignored"]
    receipt: Optional[Receipt] = None
    message: Optional[str] = None
    carousel: CarouselView
