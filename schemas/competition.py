from pydantic import BaseModel, Field
from typing import Optional, List
from datetime import date, datetime
from models.competition import CompetitionStatus
from models.city import CityStatus


# Competition schemas
class CompetitionCreate(BaseModel):
    name: str = Field(..., min_length=3, max_length=255, description="Competition name")
    description: Optional[str] = Field(None, max_length=2000)


class CompetitionUpdate(BaseModel):
    name: Optional[str] = Field(None, min_length=3, max_length=255)
    description: Optional[str] = Field(None, max_length=2000)


class CompetitionRead(BaseModel):
    id: int
    name: str
    description: Optional[str] = None
    status: CompetitionStatus
    registration_open: bool
    created_at: Optional[datetime] = None
    participant_count: int = 0

    class Config:
        from_attributes = True


class StatusChange(BaseModel):
    status: CompetitionStatus
    registration_open: bool


# City / branch schemas
class CityRead(BaseModel):
    id: int
    name: str
    status: CityStatus

    class Config:
        from_attributes = True


class BranchRead(BaseModel):
    id: int
    competition_id: int
    city_id: int
    city_name: str
    event_date: Optional[date] = None
    registration_open: bool
    finished_at: Optional[datetime] = None
    participant_count: int = 0


class CompetitionDetail(CompetitionRead):
    branches: List[BranchRead] = []
