from sqlalchemy import BigInteger, Column, DateTime, Index, Integer, Text
from app.core.db import Base

class VehicleObservation(Base):
    __tablename__ = "vehicles"

    observation_id = Column(BigInteger().with_variant(Integer, "sqlite"), primary_key=True, autoincrement=True)

    id = Column(Text, nullable=False, index=True)   # vehicle id
    time = Column(DateTime(timezone=True), nullable=False, index=True)

    trip_id = Column(Text, nullable=True)
    next_stop_id = Column(Text, nullable=True)
    delay_min = Column(Integer, nullable=True)

    __table_args__ = (
        Index("ix_vehicles_trip_time", "trip_id", "time"),
    )
