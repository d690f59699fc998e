from pydantic import BaseModel, Field
from typing import Optional, List
from datetime import date, datetime
from models.round import RoundStatus
from models.round_participation import QualifiedBy


class RoundCreate(BaseModel):
    competition_id: int
    city_id: int
    round_number: int = Field(..., ge=1, description="1 for the opening round")
    name: str = Field(..., min_length=1, max_length=255)
    round_date: Optional[date] = None
    is_finale: bool = False


class RoundUpdate(BaseModel):
    name: Optional[str] = Field(None, min_length=1, max_length=255)
    round_date: Optional[date] = None
    status: Optional[RoundStatus] = None
    is_finale: Optional[bool] = None


class RoundRead(BaseModel):
    id: int
    competition_id: int
    city_id: int
    round_number: int
    name: str
    round_date: Optional[date] = None
    is_finale: bool
    status: RoundStatus
    created_at: Optional[datetime] = None

    class Config:
        from_attributes = True


class RoundSummary(RoundRead):
    city_name: str
    participant_count: int = 0
    scored_count: int = 0


class RoundEntryRead(BaseModel):
    """One participant of a round joined with user and score"""
    round_participation_id: int
    participation_id: int
    user_id: int
    full_name: str
    email: str
    mi_id: str
    qualified_by: QualifiedBy
    score: Optional[float] = None
    rank_in_round: Optional[int] = None
    is_winner: bool = False
    winner_position: Optional[int] = None
    notes: Optional[str] = None


class RoundDetail(RoundSummary):
    competition_name: str
    participants: List[RoundEntryRead] = []


class PromotionResult(BaseModel):
    promoted: int
    next_round_id: int


class WinnerImportSelection(BaseModel):
    city_id: int
    count: int = Field(..., ge=1)


class EligibleParticipant(BaseModel):
    participation_id: int
    user_id: int
    full_name: str
    email: str
    mi_id: str
    city_id: int
    is_past_winner: bool = False
