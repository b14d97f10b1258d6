from typing import List, Optional
from pydantic import BaseModel, ConfigDict, Field


class GeoLocation(BaseModel):
    """Brewery coordinates"""
    accuracy: Optional[str] = None
    lat: float
    lon: float


class BreweryDocument(BaseModel):
    """A record of the brewery sample dataset"""
    model_config = ConfigDict(extra="allow")

    name: str = Field(..., description="Brewery name")
    type: str = Field(default="brewery", description="Document type")
    description: str = Field(default="", description="Free text description")
    address: List[str] = Field(default_factory=list, description="Street address lines")
    city: str = Field(default="", description="City")
    state: str = Field(default="", description="State or region")
    country: str = Field(default="", description="Country")
    code: str = Field(default="", description="Postal code")
    phone: str = Field(default="", description="Phone number")
    website: str = Field(default="", description="Website URL")
    geo: Optional[GeoLocation] = Field(None, description="Coordinates")
    service: str = Field(default="", description="Partition label the document was seeded under")
