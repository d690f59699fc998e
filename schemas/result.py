from pydantic import BaseModel, Field, validator
from typing import Optional, List
from datetime import datetime
from models.result import ResultStatus


class WinnerEntry(BaseModel):
    round_participation_id: int
    position: int = Field(..., ge=1, description="1 is the winner, everyone else is a finalist")


class WinnerSelection(BaseModel):
    winners: List[WinnerEntry] = Field(..., min_items=1)

    @validator('winners')
    def validate_winners(cls, v):
        positions = [w.position for w in v]
        if len(positions) != len(set(positions)):
            raise ValueError("Winner positions must be unique")

        entry_ids = [w.round_participation_id for w in v]
        if len(entry_ids) != len(set(entry_ids)):
            raise ValueError("A participant can hold only one position")

        return sorted(v, key=lambda w: w.position)


class ResultAssign(BaseModel):
    participation_id: int
    result_status: ResultStatus
    position: Optional[int] = Field(None, ge=1)


class ResultRead(BaseModel):
    id: int
    participation_id: int
    result_status: ResultStatus
    position: Optional[int] = None
    locked: bool
    created_at: Optional[datetime] = None

    class Config:
        from_attributes = True


class ResultWithParticipant(ResultRead):
    user_id: int
    full_name: str
    email: str
    mi_id: str
    competition_id: int
    city_id: int
    city_name: str


class CityStatusRound(BaseModel):
    id: int
    round_number: int
    name: str
    is_finale: bool
    status: str


class CompetitionCityStatus(BaseModel):
    rounds: List[CityStatusRound] = []
    has_finale: bool
    finale_completed: bool
    all_rounds_completed: bool
    is_finished: bool
    can_mark_finished: bool
