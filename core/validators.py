from sqlalchemy.orm import Session
from models.competition import Competition, CompetitionStatus
from models.city import City, CompetitionCity
from models.round import Round
from models.participation import Participation
from models.round_participation import RoundParticipation
from models.result import Result
from models.user import User
from core.exceptions import (
    CompetitionNotFound, CityNotFound, CityNotInCompetition, RoundNotFound,
    ParticipationNotFound, RoundParticipationNotFound, ResultNotFound, UserNotFound,
    InvalidOperation, RegistrationClosed
)
from api.crud.competition_crud import get_competition
from api.crud.city_crud import get_city, get_branch
from api.crud.round_crud import get_round
from api.crud.participation_crud import get_participation
from api.crud.round_participation_crud import get_round_participation
from api.crud.result_crud import get_result
from api.crud.user_crud import get_user

# Statuses in which the registration flag may change and users may join
REGISTRATION_STATUSES = (CompetitionStatus.DRAFT, CompetitionStatus.ACTIVE)


def validate_competition_exists(db: Session, competition_id: int) -> Competition:
    """Validate competition exists and return it"""
    competition = get_competition(db, competition_id)
    if not competition:
        raise CompetitionNotFound()
    return competition


def validate_city_exists(db: Session, city_id: int) -> City:
    city = get_city(db, city_id)
    if not city:
        raise CityNotFound()
    return city


def validate_branch_exists(db: Session, competition_id: int, city_id: int) -> CompetitionCity:
    """Validate the city is part of the competition and return the branch"""
    branch = get_branch(db, competition_id, city_id)
    if not branch:
        raise CityNotInCompetition()
    return branch


def validate_round_exists(db: Session, round_id: int) -> Round:
    db_round = get_round(db, round_id)
    if not db_round:
        raise RoundNotFound()
    return db_round


def validate_participation_exists(db: Session, participation_id: int) -> Participation:
    participation = get_participation(db, participation_id)
    if not participation:
        raise ParticipationNotFound()
    return participation


def validate_round_participation_exists(db: Session, round_participation_id: int) -> RoundParticipation:
    entry = get_round_participation(db, round_participation_id)
    if not entry:
        raise RoundParticipationNotFound()
    return entry


def validate_result_exists(db: Session, result_id: int) -> Result:
    result = get_result(db, result_id)
    if not result:
        raise ResultNotFound()
    return result


def validate_user_exists(db: Session, user_id: int) -> User:
    """Validate user exists and return it"""
    user = get_user(db, user_id)
    if not user:
        raise UserNotFound()
    return user


def validate_registration_toggle_allowed(competition: Competition):
    if competition.status not in REGISTRATION_STATUSES:
        raise InvalidOperation(
            f"Registration can only be toggled for DRAFT or ACTIVE competitions, not {competition.status.value}"
        )


def validate_registration_open(competition: Competition, branch: CompetitionCity):
    """Both the competition flag and the branch flag must be open"""
    if not competition.registration_open:
        raise RegistrationClosed()
    if competition.status not in REGISTRATION_STATUSES:
        raise RegistrationClosed(f"Competition is {competition.status.value}, registration is not available")
    if not branch.registration_open:
        raise RegistrationClosed("Registration is closed for this city")


def validate_positive_count(count: int, what: str = "count"):
    if count is None or count < 1:
        raise InvalidOperation(f"{what} must be at least 1")
