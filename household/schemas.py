"""
Pydantic schemas for the household FastAPI backend.
"""

from __future__ import annotations

from datetime import date, datetime
from typing import Literal, Optional

from pydantic import BaseModel, ConfigDict, Field

from household.shared.types import EventCategory, RepeatPattern


class RowModel(BaseModel):
    model_config = ConfigDict(from_attributes=True)


# Auth and profiles


class RegisterRequest(BaseModel):
    email: str = Field(..., min_length=3, max_length=320, pattern=r"^[^@\s]+@[^@\s]+$")
    password: str = Field(..., min_length=6, max_length=128)
    username: str = Field(..., min_length=1, max_length=64)
    family_group: str = Field(..., min_length=1, max_length=64)


class LoginRequest(BaseModel):
    email: str
    password: str


class ProfileResponse(RowModel):
    id: str
    email: str
    username: str
    family_group: Optional[str] = None
    avatar: Optional[str] = None
    created_at: datetime


class FamilyMemberResponse(ProfileResponse):
    is_current_user: bool = False


class LoginResponse(BaseModel):
    access_token: str
    token_type: Literal["bearer"] = "bearer"
    profile: ProfileResponse


class AvatarUpdate(BaseModel):
    avatar: str


class StatusResponse(BaseModel):
    status: Literal["ok"] = "ok"


class DeletedResponse(BaseModel):
    deleted: int


# Catalog


class CategoryPayload(BaseModel):
    name: str = Field(..., min_length=1, max_length=128)
    corsia_esselunga: Optional[str] = None
    corsia_mercato: Optional[str] = None
    corsia_carrefour: Optional[str] = None
    corsia_penny: Optional[str] = None
    corsia_coop: Optional[str] = None


class CategoryResponse(CategoryPayload, RowModel):
    id: int
    family_group: str


class ProductPayload(BaseModel):
    articolo: str = Field(..., min_length=1, max_length=256)
    categoria_id: int
    descrizione_articolo: Optional[str] = None
    unita_misura: Optional[str] = None
    preferito: bool = False
    prezzo: Optional[float] = None
    prezzo_esselunga: Optional[float] = None
    prezzo_mercato: Optional[float] = None
    prezzo_carrefour: Optional[float] = None
    prezzo_penny: Optional[float] = None
    prezzo_coop: Optional[float] = None


class ProductResponse(ProductPayload, RowModel):
    id: int
    family_group: str
    categoria_nome: Optional[str] = None


# Shopping list and purchases


class ShoppingItemCreate(BaseModel):
    prodotto_id: int
    supermercato: Optional[str] = None


class RecipeShoppingItemCreate(BaseModel):
    prodotto_id: int


class ShoppingItemUpdate(BaseModel):
    quantita: Optional[float] = Field(None, gt=0)
    prezzo: Optional[float] = None
    fatto: Optional[bool] = None
    supermercato: Optional[str] = None


class ShoppingItemResponse(RowModel):
    id: int
    family_group: str
    prodotto_id: Optional[int] = None
    user_id: Optional[str] = None
    inserito_da: Optional[str] = None
    articolo: str
    descrizione: Optional[str] = None
    categoria: Optional[str] = None
    corsia: Optional[str] = None
    supermercato: Optional[str] = None
    unita_misura: Optional[str] = None
    quantita: float
    prezzo: Optional[float] = None
    fatto: bool
    prezzo_esselunga: Optional[float] = None
    prezzo_mercato: Optional[float] = None
    prezzo_carrefour: Optional[float] = None
    prezzo_penny: Optional[float] = None
    prezzo_coop: Optional[float] = None
    created_at: datetime


class PurchaseResponse(RowModel):
    id: int
    articolo: str
    categoria: Optional[str] = None
    supermercato: Optional[str] = None
    data_acquisto: datetime
    quantita: float
    unita_misura: Optional[str] = None
    prezzo: Optional[float] = None
    prezzo_esselunga: Optional[float] = None
    prezzo_mercato: Optional[float] = None
    prezzo_carrefour: Optional[float] = None
    prezzo_penny: Optional[float] = None
    prezzo_coop: Optional[float] = None


class FinishShoppingResponse(BaseModel):
    purchased: list[PurchaseResponse]


class PurchaseAnalysisResponse(BaseModel):
    acquisti: list[PurchaseResponse]
    totale: float
    totali_supermercati: dict[str, float]


# Recipes


class RecipeRequest(BaseModel):
    recipe_text: str = Field("", max_length=20000)


class IngredientsResponse(BaseModel):
    ingredients: list[str]


class InstructionsResponse(BaseModel):
    instructions: str


class IngredientMatchRequest(BaseModel):
    ingredients: list[str]


# Chat and calls


class MessageResponse(RowModel):
    id: int
    family_group: str
    sender_id: str
    sender_username: Optional[str] = None
    content: str
    file_url: Optional[str] = None
    file_name: Optional[str] = None
    file_type: Optional[str] = None
    created_at: datetime


class PresenceResponse(BaseModel):
    online: list[str]


class IceServer(BaseModel):
    urls: str


class IceServersResponse(BaseModel):
    ice_servers: list[IceServer]


class CallRingResponse(BaseModel):
    channel: str
    message: MessageResponse


# Calendar and medications


class EventFields(BaseModel):
    start: datetime
    end: datetime
    repeat_pattern: RepeatPattern = RepeatPattern.NONE
    repeat_end_date: Optional[date] = None
    notifications_enabled: bool = False
    send_before_hours: float = Field(1, ge=0)
    notify_emails: list[str] = Field(default_factory=list)


class EventPayload(EventFields):
    title: str = Field(..., min_length=1, max_length=256)
    description: Optional[str] = None
    categoria_eve: EventCategory = EventCategory.ALTRO


class MedicationEventPayload(EventFields):
    nome_farmaco: str = Field(..., min_length=1)
    quantita: float = Field(..., gt=0)


class EventResponse(RowModel):
    id: int
    family_group: str
    created_by: str
    title: str
    description: Optional[str] = None
    categoria_eve: str
    start: datetime
    end: datetime
    repeat_pattern: Optional[str] = None
    recurrence_id: Optional[str] = None
    notify_at: Optional[datetime] = None
    notify_emails: list[str] = Field(default_factory=list)
    notified_at: Optional[datetime] = None
    series_end: Optional[datetime] = None


class MedicationEventResponse(EventResponse):
    nome_farmaco: str
    quantita: float
    username: Optional[str] = None


class MedicationPayload(BaseModel):
    nome_farmaco: str = Field(..., min_length=1, max_length=256)
    dosaggio: Optional[str] = None
    istruzioni: Optional[str] = None
    quantita_attuale: float = Field(0, ge=0)
    quantita_scortaminima: float = Field(0, ge=0)
    giorni_ricezione: Optional[str] = None


class MedicationResponse(MedicationPayload, RowModel):
    id: int
    family_group: str
    low_stock: bool = False


class StockUpdate(BaseModel):
    quantita_attuale: float = Field(..., ge=0)


class MedicationBulkEdit(BaseModel):
    id: int
    quantita_attuale: Optional[float] = Field(None, ge=0)
    quantita_scortaminima: Optional[float] = Field(None, ge=0)
    giorni_ricezione: Optional[str] = None
    dosaggio: Optional[str] = None
    istruzioni: Optional[str] = None


# Documents


class DocumentResponse(RowModel):
    id: int
    family_group: str
    uploaded_by: str
    username: Optional[str] = None
    file_url: str
    file_name: str
    file_type: Optional[str] = None
    description: Optional[str] = None
    reference_date: date
    created_at: datetime


class SignUrlResponse(BaseModel):
    url: str


# Web push


class PushKeys(BaseModel):
    p256dh: str = Field(..., min_length=1)
    auth: str = Field(..., min_length=1)


class PushSubscriptionPayload(BaseModel):
    """Browser ``PushSubscription.toJSON()`` shape."""

    endpoint: str = Field(..., pattern=r"^https://")
    keys: PushKeys


class PushSubscriptionResponse(RowModel):
    id: int
    user_id: str
    family_group: str
    endpoint: str
    created_at: datetime


class VapidKeyResponse(BaseModel):
    public_key: Optional[str] = None
