from typing import Any, Optional, Union
from pydantic import BaseModel, field_validator


class ComplianceIn(BaseModel):
    title: Optional[str] = None
    description: Optional[str] = None
    category: Optional[str] = "maintenance"
    priority: Optional[str] = "medium"
    status: Optional[str] = "pending"
    location: Optional[str] = None
    roomNumber: Optional[str] = None
    apartmentNumber: Optional[str] = None
    paidBy: Optional[str] = "management"
    paidByUserId: Optional[str] = None
    assignedTo: Optional[str] = None
    # Numbers or numeric strings; anything unreadable counts as 0
    workCost: Optional[Union[float, str]] = 0
    toolsCost: Optional[Union[float, str]] = 0
    notes: Optional[str] = None
    # Images already attached to the ticket, in any stored format
    imageUrls: Optional[Any] = None

    @field_validator("paidBy", mode="before")
    @classmethod
    def default_payer(cls, v):
        return v or "management"
