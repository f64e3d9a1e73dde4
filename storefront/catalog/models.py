from decimal import Decimal
from typing import Optional
from pydantic import BaseModel, ConfigDict, Field


class ComicCreateIn(BaseModel):
    title: str = Field(..., min_length=1, max_length=255)
    issue: Optional[str] = Field(None, max_length=64)
    publisher: Optional[str] = Field(None, max_length=128)
    price: Decimal = Field(..., ge=0, max_digits=10, decimal_places=2)
    image: Optional[str] = Field(None, max_length=512)
    description: Optional[str] = None


class ComicUpdateIn(BaseModel):
    title: Optional[str] = Field(None, min_length=1, max_length=255)
    issue: Optional[str] = Field(None, max_length=64)
    publisher: Optional[str] = Field(None, max_length=128)
    price: Optional[Decimal] = Field(None, ge=0, max_digits=10, decimal_places=2)
    image: Optional[str] = Field(None, max_length=512)
    description: Optional[str] = None

    model_config = {"extra": "forbid"}   # unknown fields -> 422


class CompanyCreateIn(BaseModel):
    name: str = Field(..., min_length=1, max_length=128)
    image: Optional[str] = Field(None, max_length=512)


class CharacterCreateIn(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    name: str = Field(..., min_length=1, max_length=255)
    image: Optional[str] = Field(None, max_length=512)
    first_appearance: Optional[str] = Field(None, alias="firstAppearance", max_length=255)


class CharacterUpdateIn(BaseModel):
    model_config = ConfigDict(populate_by_name=True, extra="forbid")

    name: Optional[str] = Field(None, min_length=1, max_length=255)
    image: Optional[str] = Field(None, max_length=512)
    first_appearance: Optional[str] = Field(None, alias="firstAppearance", max_length=255)
