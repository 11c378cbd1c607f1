from typing import Any, Optional
from pydantic import BaseModel


class ServiceIn(BaseModel):
    nameEn: Optional[str] = None
    nameAr: Optional[str] = None
    descriptionEn: Optional[str] = None
    descriptionAr: Optional[str] = None
    type: Optional[str] = "maintenance"
    price: Optional[Any] = 0
    duration: Optional[Any] = 0
    isAvailable: bool = True
    imageUrl: Optional[str] = None
    providerName: Optional[str] = None
    providerContact: Optional[str] = None
