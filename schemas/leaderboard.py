from pydantic import BaseModel
from typing import Optional, List
from datetime import date, datetime
from models.competition import CompetitionStatus
from models.round import RoundStatus
from models.result import ResultStatus


class FinaleWinner(BaseModel):
    user_id: int
    mi_id: str
    full_name: str
    city_id: int
    city_name: str
    round_id: int
    round_name: str
    score: Optional[float] = None
    winner_position: Optional[int] = None


class UserRoundPosition(BaseModel):
    round_id: int
    round_name: str
    round_number: int
    is_finale: bool
    round_status: RoundStatus
    city_name: str
    score: Optional[float] = None
    rank_in_round: Optional[int] = None
    is_winner: bool = False
    winner_position: Optional[int] = None


class CityLeaderboardEntry(BaseModel):
    """Finale winner (round_name set) or stored Result (round_name empty)"""
    user_id: int
    mi_id: str
    full_name: str
    competition_id: int
    competition_name: str
    result_status: ResultStatus
    position: Optional[int] = None
    round_name: Optional[str] = None
    score: Optional[float] = None


class OverallStats(BaseModel):
    active_competitions: int = 0
    total_participations: int = 0
    total_winners: int = 0
    active_cities: int = 0


class TopPerformer(BaseModel):
    user_id: int
    mi_id: str
    full_name: str
    total_participations: int
    wins: int
    first_places: int


class LeaderboardCompetition(BaseModel):
    id: int
    name: str
    status: CompetitionStatus
    round_count: int = 0
    completed_finales: int = 0
    participant_count: int = 0


# Public competition listing
class OpenCompetitionCity(BaseModel):
    competition_city_id: int
    city_id: int
    city_name: str
    event_date: Optional[date] = None
    registration_open: bool
    participant_count: int = 0


class OpenCompetition(BaseModel):
    id: int
    name: str
    description: Optional[str] = None
    status: CompetitionStatus
    registration_open: bool
    created_at: Optional[datetime] = None
    cities: List[OpenCompetitionCity] = []
    total_participants: int = 0
