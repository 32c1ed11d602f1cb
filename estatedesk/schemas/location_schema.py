"""Read models for the country / state / city reference tables."""
from typing import Optional

from pydantic import BaseModel, ConfigDict


class CountryInfo(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: str
    name: str
    code: str = ""
    phone_code: Optional[str] = None
    currency_code: Optional[str] = None


class StateInfo(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: str
    name: str
    code: Optional[str] = None
    country_id: str


class CityInfo(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: str
    name: str
    state_id: str
    postal_code: Optional[str] = None
