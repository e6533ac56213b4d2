from pydantic import BaseModel, Field
from datetime import datetime
from typing import Optional


class LocationUpdate(BaseModel):
    """Location submitted by a user. Range checks happen in GeoCoordinate."""
    lat: float
    lon: float


class CoordinatePair(BaseModel):
    """Two raw coordinates to check against the matching radius."""
    lat_a: float
    lon_a: float
    lat_b: float
    lon_b: float


class MatchRequestCreate(BaseModel):
    """A user asking to be matched with another user, optionally for a listing."""
    requester_id: str = Field(..., min_length=1)
    target_id: str = Field(..., min_length=1)
    listing_id: Optional[str] = Field(default=None, min_length=1)


class MatchResponse(BaseModel):
    """Target's answer to a pending match request."""
    responder_id: str = Field(..., min_length=1)
    accept: bool


class LocationOut(BaseModel):
    """What the API reveals about a stored location: the cell, never the coordinate."""
    user_id: str
    cell_id: str
    resolution: int
    updated_at: datetime
