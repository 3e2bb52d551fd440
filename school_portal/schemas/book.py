from datetime import datetime
from typing import Optional

from pydantic import BaseModel, Field, field_validator


class BookCreate(BaseModel):
    title: str
    author: Optional[str] = None
    isbn: Optional[str] = None
    total_copies: int = Field(ge=0)


class BookUpdate(BaseModel):
    title: Optional[str] = None
    author: Optional[str] = None
    isbn: Optional[str] = None
    total_copies: Optional[int] = Field(default=None, ge=0)
    available_copies: Optional[int] = Field(default=None, ge=0)

    # Omitir un campo es válido; mandarlo como null en columnas NOT NULL no
    @field_validator("title", "total_copies", "available_copies")
    @classmethod
    def not_null(cls, value):
        if value is None:
            raise ValueError("field cannot be null")
        return value


class BookRead(BaseModel):
    id: int
    title: str
    author: Optional[str] = None
    isbn: Optional[str] = None
    total_copies: int
    available_copies: int
    created_at: datetime
    updated_at: datetime

    class Config:
        from_attributes = True
