# app/schemas/analysis.py
from pydantic import BaseModel, ConfigDict, Field, ValidationError
from typing import List, Optional

class Recommendation(BaseModel):
    model_config = ConfigDict(extra="allow")

    type: Optional[str] = Field(None, description="Kind of bag to add")
    reason: Optional[str] = Field(None, description="Why it would improve the collection")
    # Left as free text: the model does not always stick to high/medium/low
    priority: Optional[str] = Field(None, description="Priority level: high, medium, low")

class AnalysisResult(BaseModel):
    """Collection critique returned by the AI provider.

    Fields the provider leaves out stay None so the caller can tell "absent"
    from "empty"; the parser never fills them in.
    """
    model_config = ConfigDict(extra="allow")

    overview: Optional[str] = Field(None, description="Brief overview of the collection")
    gaps: Optional[List[str]] = Field(None, description="What the collection is missing")
    outdated: Optional[List[str]] = Field(None, description="Bags that look dated or worn")
    recommendations: Optional[List[Recommendation]] = Field(None, description="Bags to add next")

    @classmethod
    def overview_only(cls, text: str) -> "AnalysisResult":
        return cls(overview=text, gaps=[], outdated=[], recommendations=[])

    @classmethod
    def from_decoded(cls, data: dict) -> "AnalysisResult":
        """Validate ``data``; a shape the model does not expect is kept as sent."""
        try:
            return cls.model_validate(data)
        except ValidationError:
            return cls.model_construct(**data)

    def to_data(self) -> dict:
        # Unvalidated results may hold e.g. a string where a list is declared
        return self.model_dump(exclude_none=True, warnings=False)

class BagImage(BaseModel):
    model_config = ConfigDict(extra="allow")

    image: str

class AnalyzeRequest(BaseModel):
    """Body of POST /analyze."""
    apiKey: str
    bags: List[BagImage]
    customPrompt: Optional[str] = None

class CollectionAnalyzeRequest(BaseModel):
    customPrompt: Optional[str] = None
