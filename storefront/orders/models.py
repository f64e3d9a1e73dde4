from typing import Optional
from pydantic import BaseModel, ConfigDict, Field


# customer fields are optional here so that missing values surface as INVALID_REQUEST
class CustomerIn(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    name: Optional[str] = Field(None, max_length=255)
    email: Optional[str] = Field(None, max_length=255)
    address: Optional[str] = None
    payment_method: Optional[str] = Field(None, alias="paymentMethod", max_length=64)
    pickup: Optional[bool] = False
    country: Optional[str] = Field(None, max_length=64)


class CheckoutIn(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    session_token: Optional[str] = Field(None, alias="sessionToken")
    customer: Optional[CustomerIn] = None
