"""
SQLAlchemy ORM models for persistence.
"""
from datetime import datetime
from sqlalchemy import Boolean, Column, DateTime, Float, Integer, String, Text

from db import Base


class PlaceORM(Base):
    __tablename__ = "places"

    id = Column(String, primary_key=True, index=True)
    # User-significant order of the saved set.
    position = Column(Integer, nullable=False, index=True)
    name = Column(String, nullable=False)
    lat = Column(Float, nullable=False)
    lng = Column(Float, nullable=False)
    description = Column(Text, nullable=False, default="")
    category = Column(String, nullable=False)
    place_type = Column(String, nullable=False)
    image = Column(String, nullable=False, default="")
    address = Column(String, nullable=True)
    visited = Column(Boolean, nullable=False, default=False)
    rating = Column(Float, nullable=True)
    created_at = Column(DateTime, default=datetime.utcnow, nullable=False)
