from dataclasses import asdict, dataclass
from datetime import datetime
from typing import Optional


@dataclass(frozen=True)
class SnapshotMetrics:
    active_buses: int
    buses_on_routes: int
    trips_scheduled: int
    trips_not_running: int
    trips_never_ran: int
    trips_canceled: int
    trips_still_running: int

    def as_dict(self) -> dict:
        return asdict(self)


@dataclass(frozen=True)
class SeriesPoint:
    time: str                # service time, "HH:MM:SS"
    metrics: SnapshotMetrics


@dataclass(frozen=True)
class TripDetails:
    trip_id: str
    head_sign: Optional[str]
    route_direction: Optional[int]
    scheduled_start_time: str    # service time
    scheduled_end_time: str
    actual_start_time: Optional[datetime]
    actual_end_time: Optional[datetime]
    delay: Optional[int]         # minutes, from the last on-route report
    canceled: Optional[int]      # schedule_relationship from the cancellation feed
    bus_id: Optional[str]
    block_id: str

    def as_dict(self) -> dict:
        return asdict(self)
