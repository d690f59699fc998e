from sqlalchemy import Column, Integer, DateTime, ForeignKey, Enum, UniqueConstraint
from sqlalchemy.orm import relationship
from sqlalchemy.sql import func
from db import Base
import enum


class ParticipationSource(enum.Enum):
    USER_SELF = "USER_SELF"
    ADMIN_ADDED = "ADMIN_ADDED"


class Participation(Base):
    __tablename__ = "participations"

    id = Column(Integer, primary_key=True, index=True)
    user_id = Column(Integer, ForeignKey("users.id"), nullable=False)
    competition_id = Column(Integer, ForeignKey("competitions.id"), nullable=False, index=True)
    city_id = Column(Integer, ForeignKey("cities.id"), nullable=False)
    source = Column(Enum(ParticipationSource), default=ParticipationSource.USER_SELF, nullable=False)
    registered_at = Column(DateTime(timezone=True), server_default=func.now())

    # Relationships
    user = relationship("User", back_populates="participations")
    competition = relationship("Competition", back_populates="participations")
    city = relationship("City")
    round_entries = relationship("RoundParticipation", back_populates="participation", cascade="all, delete-orphan")
    result = relationship("Result", back_populates="participation", uselist=False, cascade="all, delete-orphan")

    # Constraints
    __table_args__ = (
        UniqueConstraint('user_id', 'competition_id', 'city_id', name='unique_participation'),
    )
