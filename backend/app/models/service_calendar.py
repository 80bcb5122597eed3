from sqlalchemy import Boolean, Column, Date, Integer, Text
from app.core.db import Base

class ServiceCalendar(Base):
    __tablename__ = "service_calendar"

    gtfs_version = Column(Integer, primary_key=True)
    service_id = Column(Text, primary_key=True)

    monday = Column(Boolean, nullable=False, default=False)
    tuesday = Column(Boolean, nullable=False, default=False)
    wednesday = Column(Boolean, nullable=False, default=False)
    thursday = Column(Boolean, nullable=False, default=False)
    friday = Column(Boolean, nullable=False, default=False)
    saturday = Column(Boolean, nullable=False, default=False)
    sunday = Column(Boolean, nullable=False, default=False)

    start_date = Column(Date, nullable=False)
    end_date = Column(Date, nullable=False)


class ServiceCalendarDate(Base):
    __tablename__ = "service_calendar_dates"

    gtfs_version = Column(Integer, primary_key=True)
    service_id = Column(Text, primary_key=True)
    date = Column(Date, primary_key=True)

    exception_type = Column(Integer, nullable=False)  # 1 = added, 2 = removed
