from sqlalchemy import Column, Date, Integer, Text
from app.core.db import Base

class CanceledTrip(Base):
    __tablename__ = "canceled"

    date = Column(Date, primary_key=True)
    trip_id = Column(Text, primary_key=True)

    schedule_relationship = Column(Integer, nullable=False)
