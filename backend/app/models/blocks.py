from sqlalchemy import Column, Index, Integer, Text
from app.core.db import Base

class ScheduledTrip(Base):
    """One revenue trip inside a vehicle block, as published in a GTFS version."""

    __tablename__ = "blocks"

    gtfs_version = Column(Integer, primary_key=True)
    trip_id = Column(Text, primary_key=True)

    block_id = Column(Text, nullable=False, index=True)
    route_id = Column(Text, nullable=False, index=True)
    route_direction = Column(Integer, nullable=True)
    trip_headsign = Column(Text, nullable=True)
    service_id = Column(Text, nullable=False)

    # seconds since service-day start; may exceed 86400 for post-midnight trips
    start_time = Column(Integer, nullable=False)
    end_time = Column(Integer, nullable=False)

    __table_args__ = (
        Index("ix_blocks_version_service", "gtfs_version", "service_id"),
    )
