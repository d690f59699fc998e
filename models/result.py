from sqlalchemy import Column, Integer, DateTime, Boolean, ForeignKey, Enum
from sqlalchemy.orm import relationship
from sqlalchemy.sql import func
from db import Base
import enum


class ResultStatus(enum.Enum):
    PARTICIPATED = "PARTICIPATED"
    WINNER = "WINNER"
    FINALIST = "FINALIST"


class Result(Base):
    __tablename__ = "results"

    id = Column(Integer, primary_key=True, index=True)
    participation_id = Column(
        Integer, ForeignKey("participations.id", ondelete="CASCADE"), unique=True, nullable=False
    )
    result_status = Column(Enum(ResultStatus), nullable=False)
    position = Column(Integer, nullable=True)

    # A locked result rejects assign/bulk-assign until unlocked
    locked = Column(Boolean, default=False, nullable=False)

    created_at = Column(DateTime(timezone=True), server_default=func.now())
    updated_at = Column(DateTime(timezone=True), onupdate=func.now())

    participation = relationship("Participation", back_populates="result")
