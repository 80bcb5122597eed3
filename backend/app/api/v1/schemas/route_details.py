from datetime import datetime
from typing import Optional

from pydantic import BaseModel, ConfigDict, Field

from app.counts.types import TripDetails


class TripDetailsOut(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    trip_id: str = Field(..., alias="tripId")
    head_sign: Optional[str] = Field(None, alias="headSign")
    route_direction: Optional[int] = Field(None, alias="routeDirection")
    scheduled_start_time: str = Field(..., alias="scheduledStartTime")
    scheduled_end_time: str = Field(..., alias="scheduledEndTime")
    actual_start_time: Optional[datetime] = Field(None, alias="actualStartTime")
    actual_end_time: Optional[datetime] = Field(None, alias="actualEndTime")
    delay: Optional[int] = None
    canceled: Optional[int] = None
    bus_id: Optional[str] = Field(None, alias="busId")
    block_id: str = Field(..., alias="blockId")

    @classmethod
    def from_details(cls, details: TripDetails) -> "TripDetailsOut":
        return cls(**details.as_dict())
