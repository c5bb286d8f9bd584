"""
Modelos de matching.

Un Match es el par (preferencia, apartment) con su score 0-100 y una
explicación en texto libre con prefijos emoji.
"""

from enum import Enum
from typing import Optional

from pydantic import BaseModel, ConfigDict, Field, field_validator, model_validator

from homefit.models.apartment import Apartment


class HintType(str, Enum):
    """Categoría semántica de una línea de explicación."""

    CHECK = "check"
    CANCEL = "cancel"
    DIAMOND = "diamond"
    WARNING = "warning"
    LIGHTBULB = "lightbulb"
    INFO = "info"


class ExplanationHint(BaseModel):
    """Una línea de explicación ya tipada."""

    type: HintType
    text: str


class SortField(str, Enum):
    MATCH_SCORE = "matchScore"
    PRICE = "price"
    DATE_ADDED = "dateAdded"


class SortOrder(str, Enum):
    ASC = "asc"
    DESC = "desc"


class Match(BaseModel):
    """Resultado de matching para un apartment."""

    model_config = ConfigDict(populate_by_name=True, extra="ignore")

    apartment: Apartment
    match_score: float = Field(0.0, alias="matchScore")
    explanation: Optional[str] = Field(None)
    created_at: Optional[str] = Field(None, alias="createdAt")

    @field_validator("match_score", mode="before")
    @classmethod
    def score_or_zero(cls, value):
        try:
            return float(value)
        except (TypeError, ValueError):
            return 0.0


class MatchPage(BaseModel):
    """Página de resultados de /user/matches/:prefId."""

    model_config = ConfigDict(populate_by_name=True, extra="ignore")

    results: list[Match] = Field(default_factory=list)
    total_count: int = Field(0, alias="totalCount")
    filtered_count: int = Field(0, alias="filteredCount")

    @model_validator(mode="before")
    @classmethod
    def fill_counts(cls, data):
        if not isinstance(data, dict):
            return data
        data = dict(data)
        data["results"] = data.get("results") or []
        data["totalCount"] = data.get("totalCount") or data.get("total_count") or 0
        # Si el backend no manda filteredCount se asume el total
        filtered = data.get("filteredCount") or data.get("filtered_count")
        data["filteredCount"] = filtered or data["totalCount"]
        data.pop("total_count", None)
        data.pop("filtered_count", None)
        return data
