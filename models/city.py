from sqlalchemy import Column, Integer, String, Date, DateTime, Boolean, ForeignKey, Enum, UniqueConstraint
from sqlalchemy.orm import relationship
from sqlalchemy.sql import func
from db import Base
import enum


class CityStatus(enum.Enum):
    ACTIVE = "ACTIVE"
    INACTIVE = "INACTIVE"


class City(Base):
    __tablename__ = "cities"

    id = Column(Integer, primary_key=True, index=True)
    name = Column(String(100), nullable=False)
    status = Column(Enum(CityStatus), default=CityStatus.ACTIVE, nullable=False)

    branches = relationship("CompetitionCity", back_populates="city")


class CompetitionCity(Base):
    """A competition's branch in one city"""
    __tablename__ = "competition_cities"

    id = Column(Integer, primary_key=True, index=True)
    competition_id = Column(Integer, ForeignKey("competitions.id", ondelete="CASCADE"), nullable=False)
    city_id = Column(Integer, ForeignKey("cities.id"), nullable=False)
    event_date = Column(Date, nullable=True)

    # Closed per city even while the competition-level flag stays open
    registration_open = Column(Boolean, default=True, nullable=False)
    finished_at = Column(DateTime(timezone=True), nullable=True)

    created_at = Column(DateTime(timezone=True), server_default=func.now())

    competition = relationship("Competition", back_populates="branches")
    city = relationship("City", back_populates="branches")

    __table_args__ = (
        UniqueConstraint('competition_id', 'city_id', name='unique_competition_city'),
    )
