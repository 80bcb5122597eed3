from sqlalchemy import Column, Date, DateTime, Integer
from sqlalchemy.sql import func
from app.core.db import Base

class GtfsVersion(Base):
    __tablename__ = "gtfs_versions"

    gtfs_version = Column(Integer, primary_key=True)

    start_date = Column(Date, nullable=False, index=True)
    end_date = Column(Date, nullable=True)   # NULL = still in effect

    imported_at = Column(DateTime(timezone=True), server_default=func.now(), nullable=False)
