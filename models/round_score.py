from sqlalchemy import Column, Integer, Float, Text, DateTime, Boolean, ForeignKey
from sqlalchemy.orm import relationship
from sqlalchemy.sql import func
from db import Base


class RoundScore(Base):
    __tablename__ = "round_scores"

    id = Column(Integer, primary_key=True, index=True)
    round_participation_id = Column(
        Integer, ForeignKey("round_participations.id", ondelete="CASCADE"), unique=True, nullable=False
    )

    score = Column(Float, nullable=True)
    rank_in_round = Column(Integer, nullable=True)  # Derived, rewritten after every score change

    # Only meaningful on finale rounds
    is_winner = Column(Boolean, default=False, nullable=False)
    winner_position = Column(Integer, nullable=True)

    notes = Column(Text, nullable=True)
    scored_by_admin_id = Column(Integer, nullable=True)
    created_at = Column(DateTime(timezone=True), server_default=func.now())
    updated_at = Column(DateTime(timezone=True), server_default=func.now(), onupdate=func.now())

    entry = relationship("RoundParticipation", back_populates="score")
