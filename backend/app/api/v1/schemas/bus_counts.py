from pydantic import BaseModel, ConfigDict, Field

from app.counts.types import SeriesPoint, SnapshotMetrics


class BusCounts(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    active_buses: int = Field(..., alias="activeBuses")
    buses_on_routes: int = Field(..., alias="busesOnRoutes")
    trips_scheduled: int = Field(..., alias="tripsScheduled")
    trips_not_running: int = Field(..., alias="tripsNotRunning")
    trips_never_ran: int = Field(..., alias="tripsNeverRan")
    trips_canceled: int = Field(..., alias="tripsCanceled")
    trips_still_running: int = Field(..., alias="tripsStillRunning")

    @classmethod
    def from_metrics(cls, metrics: SnapshotMetrics) -> "BusCounts":
        return cls(**metrics.as_dict())


class BusCountsAtTime(BusCounts):
    time: str = Field(..., description="Service time HH:MM:SS (HH may exceed 23)")

    @classmethod
    def from_point(cls, point: SeriesPoint) -> "BusCountsAtTime":
        return cls(time=point.time, **point.metrics.as_dict())
