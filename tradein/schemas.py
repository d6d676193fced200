from __future__ import annotations
from typing import Any, Dict, List, Literal, Optional

from pydantic import BaseModel, Field

Condition = Literal["mint", "near_mint", "lightly_played", "moderately_played", "heavily_played", "damaged"]
TradeInStatus = Literal["pending", "accepted", "rejected"]
PaymentType = Literal["cash", "trade", "mixed"]


class CalculateValueIn(BaseModel):
    game: Optional[str] = None
    baseValue: Any = None
    userId: Optional[str] = None


class SaveSettingsIn(BaseModel):
    game: str = "pokemon"
    # validated row by row so a bad payload gets "Invalid settings format"
    settings: Any = None


class ClearCacheIn(BaseModel):
    game: Optional[str] = None


class Point130SearchIn(BaseModel):
    searchQuery: str = ""
    userAgent: Optional[str] = None


class PsaPriceLookupIn(BaseModel):
    cardName: str = ""
    setName: Optional[str] = None
    cardNumber: Optional[str] = None
    grade: Optional[str] = None


class PsaEbayPriceIn(BaseModel):
    game: str = ""
    card_name: str = ""
    card_number: str = ""
    psa_grade: str = ""


class CertIn(BaseModel):
    certNumber: str = ""


class ScrapePriceIn(BaseModel):
    productId: str
    condition: str = "near_mint"
    language: str = "English"
    isFirstEdition: bool = False
    isHolo: bool = False


class JustTcgPriceIn(BaseModel):
    productId: Optional[str] = None
    condition: str = "near_mint"
    isFirstEdition: Optional[bool] = None
    isHolo: Optional[bool] = None
    isReverseHolo: Optional[bool] = None
    game: Optional[str] = None


class CustomerIn(BaseModel):
    first_name: str = Field(min_length=1)
    last_name: str = Field(min_length=1)
    email: Optional[str] = None
    phone: Optional[str] = None


class TradeInItemIn(BaseModel):
    card_id: str
    quantity: int = Field(default=1, ge=1)
    price: float = Field(ge=0)
    condition: Condition = "near_mint"
    attributes: Dict[str, Any] = Field(default_factory=dict)


class TradeInIn(BaseModel):
    customer_id: str
    items: List[TradeInItemIn] = Field(min_length=1)
    payment_type: PaymentType = "trade"
    notes: Optional[str] = None


class TradeInStatusIn(BaseModel):
    status: TradeInStatus
    handled_by: Optional[str] = None


class StaffNotesIn(BaseModel):
    staff_notes: Optional[str] = None
