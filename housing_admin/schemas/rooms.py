from typing import Any, Optional
from pydantic import BaseModel


class RoomIn(BaseModel):
    roomNumber: Optional[str] = None
    building: Optional[str] = None
    floor: Optional[Any] = None
    type: Optional[str] = None
    capacity: Optional[Any] = None
    rentAmount: Optional[Any] = None
    # Only "maintenance" is kept; anything else is derived from contracts
    status: Optional[str] = None
    description: Optional[str] = None
