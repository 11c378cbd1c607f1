from typing import Optional
from pydantic import BaseModel


class CheckoutRequestIn(BaseModel):
    userId: Optional[str] = None
    startDate: Optional[str] = None
    endDate: Optional[str] = None
    reason: Optional[str] = None
    accompaniedBy: Optional[str] = None


class ApproveIn(BaseModel):
    notes: Optional[str] = None


class RejectIn(BaseModel):
    reason: Optional[str] = None


class StatusChangeIn(BaseModel):
    status: str
