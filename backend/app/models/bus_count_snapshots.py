from sqlalchemy import Column, Date, DateTime, Integer, Text
from sqlalchemy.sql import func
from app.core.db import Base

class BusCountSnapshot(Base):
    __tablename__ = "bus_count_snapshots"

    service_date = Column(Date, primary_key=True)
    service_time = Column(Text, primary_key=True)   # "HH:MM:SS", HH may be >= 24

    active_buses = Column(Integer, nullable=False)
    buses_on_routes = Column(Integer, nullable=False)
    trips_scheduled = Column(Integer, nullable=False)
    trips_not_running = Column(Integer, nullable=False)
    trips_never_ran = Column(Integer, nullable=False)
    trips_canceled = Column(Integer, nullable=False)
    trips_still_running = Column(Integer, nullable=False)

    computed_at = Column(DateTime(timezone=True), server_default=func.now(), nullable=False)
