"""Pydantic models for receipt data"""
from pydantic import BaseModel, Field
from datetime import datetime
from typing import Optional, Union

class Receipt(BaseModel):
    """
    Represents a single recorded expense for one calendar day.
    """
    id: Optional[str] = None
    user_id: str
    date: str = Field(..., pattern=r"^\d{4}-\d{2}-\d{2}$")
    shop_name: str
    amount: float = Field(..., ge=0, le=1_000_000_000)
    description: Optional[str] = None
    created_at: Optional[datetime] = None

    class Config:
        populate_by_name = True
        from_attributes = True

class ReceiptInput(BaseModel):
    """Raw values from the add-receipt form. Validation happens in the service layer."""
    shop_name: Optional[str] = None
    amount: Optional[Union[float, str]] = None
    description: Optional[str] = None
