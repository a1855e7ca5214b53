# app/schemas/collection/bag.py
from pydantic import BaseModel, Field, field_validator
from typing import Optional, List, Any
from enum import Enum

class Condition(str, Enum):
    EXCELLENT = "excellent"
    GOOD = "good"
    FAIR = "fair"
    POOR = "poor"

# Fields a user may edit after upload; id, image and name are fixed at creation
TRACKING_FIELDS = ("brand", "model", "purchasePrice", "estimatedValue", "condition")
IMMUTABLE_FIELDS = ("id", "image", "name")

def _amount_to_text(v: Any) -> Any:
    # Prices arrive as raw form text or as JSON numbers; keep the text form
    if isinstance(v, bool):
        return v
    if isinstance(v, (int, float)):
        return str(v)
    return v

class BagRecord(BaseModel):
    id: str
    image: str = Field(..., description="Data URI: data:<mime>;base64,<payload>")
    name: str = Field("", description="Original filename, display only")
    brand: Optional[str] = None
    model: Optional[str] = None
    purchasePrice: Optional[str] = Field(None, description="Raw amount text, empty or absent when not entered")
    estimatedValue: Optional[str] = Field(None, description="Raw amount text, empty or absent when not entered")
    condition: Condition = Condition.GOOD

    @field_validator("purchasePrice", "estimatedValue", mode="before")
    @classmethod
    def coerce_amount(cls, v):
        return _amount_to_text(v)

class BagUpdate(BaseModel):
    brand: Optional[str] = None
    model: Optional[str] = None
    purchasePrice: Optional[str] = None
    estimatedValue: Optional[str] = None
    condition: Optional[Condition] = None

    @field_validator("purchasePrice", "estimatedValue", mode="before")
    @classmethod
    def coerce_amount(cls, v):
        return _amount_to_text(v)

class CollectionValue(BaseModel):
    totalPurchasePrice: float = 0.0
    totalEstimatedValue: float = 0.0
    appreciation: float = 0.0
    appreciationPercent: float = 0.0
    trackedCount: int = 0
    totalCount: int = 0

class CredentialRequest(BaseModel):
    apiKey: str

class CredentialStatus(BaseModel):
    configured: bool

class CollectionView(BaseModel):
    bags: List[BagRecord] = Field(default_factory=list)
    value: CollectionValue
    analysis: Optional[dict] = None
    credentialConfigured: bool = False
    analyzing: bool = False
