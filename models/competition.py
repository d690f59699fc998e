from sqlalchemy import Column, Integer, String, Text, DateTime, Boolean, Enum
from sqlalchemy.orm import relationship
from sqlalchemy.sql import func
from db import Base
import enum


class CompetitionStatus(enum.Enum):
    DRAFT = "DRAFT"
    ACTIVE = "ACTIVE"
    COMPLETED = "COMPLETED"
    CANCELLED = "CANCELLED"
    ARCHIVED = "ARCHIVED"


class Competition(Base):
    __tablename__ = "competitions"

    id = Column(Integer, primary_key=True, index=True)
    name = Column(String(255), nullable=False)
    description = Column(Text, nullable=True, default="")

    # Phase and registration are independent of each other
    status = Column(Enum(CompetitionStatus), default=CompetitionStatus.DRAFT, nullable=False)
    registration_open = Column(Boolean, default=False, nullable=False)

    created_at = Column(DateTime(timezone=True), server_default=func.now())
    updated_at = Column(DateTime(timezone=True), onupdate=func.now())

    # Relationships
    branches = relationship("CompetitionCity", back_populates="competition", cascade="all, delete-orphan")
    rounds = relationship("Round", back_populates="competition", cascade="all, delete-orphan")
    participations = relationship("Participation", back_populates="competition")
