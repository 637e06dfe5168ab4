"""
Users Module - Schemas
"""

from typing import Optional

from pydantic import BaseModel, Field


EMAIL_PATTERN = r"^[^@\s]+@[^@\s]+\.[^@\s]+$"


class CreateUser(BaseModel):
    name: str = Field(min_length=2)
    email: str = Field(pattern=EMAIL_PATTERN)
    age: int = Field(ge=18, strict=True)


class UpdateUser(BaseModel):
    name: Optional[str] = Field(default=None, min_length=2)
    email: Optional[str] = Field(default=None, pattern=EMAIL_PATTERN)
    age: Optional[int] = Field(default=None, ge=18)
