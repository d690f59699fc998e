from sqlalchemy import Column, Integer, DateTime, ForeignKey, Enum, UniqueConstraint
from sqlalchemy.orm import relationship
from sqlalchemy.sql import func
from db import Base
import enum


class QualifiedBy(enum.Enum):
    AUTOMATIC = "AUTOMATIC"
    MANUAL = "MANUAL"


class RoundParticipation(Base):
    __tablename__ = "round_participations"

    id = Column(Integer, primary_key=True, index=True)
    round_id = Column(Integer, ForeignKey("rounds.id", ondelete="CASCADE"), nullable=False, index=True)
    participation_id = Column(Integer, ForeignKey("participations.id", ondelete="CASCADE"), nullable=False)
    qualified_by = Column(Enum(QualifiedBy), default=QualifiedBy.AUTOMATIC, nullable=False)
    added_by_admin_id = Column(Integer, nullable=True)
    created_at = Column(DateTime(timezone=True), server_default=func.now())

    # Relationships
    round = relationship("Round", back_populates="entries")
    participation = relationship("Participation", back_populates="round_entries")
    score = relationship("RoundScore", back_populates="entry", uselist=False, cascade="all, delete-orphan")

    # Constraints
    __table_args__ = (
        UniqueConstraint('round_id', 'participation_id', name='unique_round_participation'),
    )
