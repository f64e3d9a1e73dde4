from typing import Optional
from pydantic import BaseModel, ConfigDict, Field


class CartItemIn(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    session_token: Optional[str] = Field(None, alias="sessionToken")
    item_id: int = Field(..., alias="itemId")


class CartQuantityIn(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    session_token: Optional[str] = Field(None, alias="sessionToken")
    quantity: int = Field(..., strict=True)
