"""Pydantic schemas for document endpoints."""

from datetime import date
from typing import Optional

from pydantic import BaseModel, Field, field_validator


class ExtractedDataUpdate(BaseModel):
    """Request schema for a manual edit (PATCH /documents/{id}/data).

    All three fields are written; the stored row is overwritten.
    """
    name: str = Field("", max_length=200, description="氏名")
    birth_date: Optional[date] = Field(None, description="生年月日 (YYYY-MM-DD)")
    address: str = Field("", max_length=500, description="住所")

    @field_validator("name", "address", mode="before")
    @classmethod
    def strip_strings(cls, v):
        if v is None:
            return ""
        if isinstance(v, str):
            return v.strip()
        return v

    @field_validator("birth_date", mode="before")
    @classmethod
    def empty_date_is_null(cls, v):
        if isinstance(v, str) and not v.strip():
            return None
        return v

    class Config:
        json_schema_extra = {
            "example": {
                "name": "山田太郎",
                "birth_date": "1980-04-01",
                "address": "東京都千代田区1-2-3丸の内ビル",
            }
        }


class DocumentStatusResponse(BaseModel):
    """Lightweight poll target."""
    id: str
    status: str
    updated_at: Optional[str] = None


class DashboardStats(BaseModel):
    total: int
    uploaded: int
    review_pending: int
    reviewed: int
    rejected: int
    review_rejected: int
