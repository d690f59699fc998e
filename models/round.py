from sqlalchemy import Column, Integer, String, Date, DateTime, Boolean, ForeignKey, Enum, UniqueConstraint
from sqlalchemy.orm import relationship
from sqlalchemy.sql import func
from db import Base
import enum


class RoundStatus(enum.Enum):
    PENDING = "PENDING"
    IN_PROGRESS = "IN_PROGRESS"
    COMPLETED = "COMPLETED"
    ARCHIVED = "ARCHIVED"


class Round(Base):
    __tablename__ = "rounds"

    id = Column(Integer, primary_key=True, index=True)
    competition_id = Column(Integer, ForeignKey("competitions.id", ondelete="CASCADE"), nullable=False)
    city_id = Column(Integer, ForeignKey("cities.id"), nullable=False)
    round_number = Column(Integer, nullable=False)  # 1, 2, 3, etc.
    name = Column(String(255), nullable=False)
    round_date = Column(Date, nullable=True)

    # At most one finale per competition-city, checked by the round engine
    is_finale = Column(Boolean, default=False, nullable=False)
    status = Column(Enum(RoundStatus), default=RoundStatus.PENDING, nullable=False)

    # Metadata
    created_at = Column(DateTime(timezone=True), server_default=func.now())

    # Relationships
    competition = relationship("Competition", back_populates="rounds")
    city = relationship("City")
    entries = relationship("RoundParticipation", back_populates="round", cascade="all, delete-orphan")

    # Constraints
    __table_args__ = (
        UniqueConstraint('competition_id', 'city_id', 'round_number', name='unique_city_round'),
    )
