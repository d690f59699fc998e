import logging
from typing import List, Optional
from sqlalchemy.orm import Session
from db import Store
from models.competition import Competition, CompetitionStatus
from schemas.competition import (
    CompetitionCreate, CompetitionUpdate, CompetitionRead, CompetitionDetail, BranchRead, StatusChange
)
from api.crud.competition_crud import (
    create_competition, get_competitions, update_competition, delete_competition,
    count_participations, participation_counts_by_competition
)
from api.crud.city_crud import get_branches, count_branches
from api.crud.round_crud import count_cities_with_completed_finale
from core.exceptions import InvalidTransition, HasParticipants, NoFieldsToUpdate
from core.validators import validate_competition_exists, validate_registration_toggle_allowed
from services.events import CompletionEvents, CITY_FINISHED

logger = logging.getLogger(__name__)

# Allowed phase changes; terminal states have no outgoing edges
STATUS_TRANSITIONS = {
    CompetitionStatus.DRAFT: {CompetitionStatus.ACTIVE, CompetitionStatus.CANCELLED},
    CompetitionStatus.ACTIVE: {CompetitionStatus.COMPLETED, CompetitionStatus.CANCELLED},
    CompetitionStatus.COMPLETED: {CompetitionStatus.ARCHIVED},
    CompetitionStatus.CANCELLED: set(),
    CompetitionStatus.ARCHIVED: set(),
}


def can_transition(current: CompetitionStatus, target: CompetitionStatus) -> bool:
    return target in STATUS_TRANSITIONS.get(current, set())


def apply_transition(competition: Competition, target: CompetitionStatus) -> Competition:
    """Move a competition along the phase graph; registration flag is left alone"""
    if not can_transition(competition.status, target):
        raise InvalidTransition(competition.status.value, target.value)
    competition.status = target
    return competition


class CompetitionLifecycleController:
    """Competition phase machine and competition-level registration flag"""

    def __init__(self, store: Store, events: CompletionEvents = None):
        self.store = store
        self.events = events
        if events is not None:
            events.subscribe(CITY_FINISHED, self.on_city_finished)

    def create_competition(self, data: CompetitionCreate) -> CompetitionRead:
        with self.store.transaction() as db:
            competition = create_competition(db, data)
            logger.info(f"Competition {competition.id} '{competition.name}' created")
            return CompetitionRead.model_validate(competition)

    def update_competition(self, competition_id: int, data: CompetitionUpdate) -> CompetitionRead:
        update_data = data.dict(exclude_unset=True)
        if not update_data:
            raise NoFieldsToUpdate()

        with self.store.transaction() as db:
            competition = validate_competition_exists(db, competition_id)
            update_competition(db, competition, update_data)
            return self._read(db, competition)

    def get_competition(self, competition_id: int) -> CompetitionDetail:
        with self.store.transaction() as db:
            competition = validate_competition_exists(db, competition_id)
            branches = [
                BranchRead(
                    id=branch.id,
                    competition_id=branch.competition_id,
                    city_id=branch.city_id,
                    city_name=branch.city.name,
                    event_date=branch.event_date,
                    registration_open=branch.registration_open,
                    finished_at=branch.finished_at,
                    participant_count=count_participations(db, competition_id, branch.city_id),
                )
                for branch in get_branches(db, competition_id)
            ]
            read = self._read(db, competition)
            return CompetitionDetail(**read.dict(), branches=branches)

    def list_competitions(self, status: Optional[CompetitionStatus] = None) -> List[CompetitionRead]:
        with self.store.transaction() as db:
            counts = participation_counts_by_competition(db)
            result = []
            for competition in get_competitions(db, status):
                read = CompetitionRead.model_validate(competition)
                read.participant_count = counts.get(competition.id, 0)
                result.append(read)
            return result

    def update_status(self, competition_id: int, new_status: CompetitionStatus) -> StatusChange:
        new_status = CompetitionStatus(new_status)
        with self.store.transaction() as db:
            competition = validate_competition_exists(db, competition_id)
            previous = competition.status
            apply_transition(competition, new_status)
            db.flush()
            logger.info(f"Competition {competition_id}: {previous.value} -> {new_status.value}")
            return StatusChange(status=competition.status, registration_open=competition.registration_open)

    def toggle_registration(self, competition_id: int, is_open: bool) -> CompetitionRead:
        with self.store.transaction() as db:
            competition = validate_competition_exists(db, competition_id)
            validate_registration_toggle_allowed(competition)
            competition.registration_open = bool(is_open)
            db.flush()
            logger.info(
                f"Competition {competition_id} registration {'opened' if is_open else 'closed'}"
            )
            return self._read(db, competition)

    def delete_competition(self, competition_id: int):
        with self.store.transaction() as db:
            competition = validate_competition_exists(db, competition_id)
            if count_participations(db, competition_id) > 0:
                raise HasParticipants()
            delete_competition(db, competition)
            logger.info(f"Competition {competition_id} deleted")

    def on_city_finished(self, db: Session, competition_id: int, city_id: int) -> bool:
        """
        Auto-complete the competition once every branch has a completed finale.

        Runs inside the caller's transaction. Returns True only when this call
        performed the ACTIVE -> COMPLETED transition.
        """
        competition = validate_competition_exists(db, competition_id)
        finished_cities = count_cities_with_completed_finale(db, competition_id)
        total_cities = count_branches(db, competition_id)

        if total_cities == 0 or finished_cities < total_cities:
            return False

        if competition.status == CompetitionStatus.COMPLETED:
            return False
        if competition.status != CompetitionStatus.ACTIVE:
            logger.warning(
                f"Competition {competition_id}: all {total_cities} cities finished "
                f"but status is {competition.status.value}, not completing"
            )
            return False

        apply_transition(competition, CompetitionStatus.COMPLETED)
        db.flush()
        logger.info(f"Competition {competition_id} completed after city {city_id} finished")
        return True

    def revert_completion(self, db: Session, competition_id: int) -> bool:
        """The only backward edge: COMPLETED -> ACTIVE when a city is reopened"""
        competition = validate_competition_exists(db, competition_id)
        if competition.status != CompetitionStatus.COMPLETED:
            return False
        competition.status = CompetitionStatus.ACTIVE
        db.flush()
        logger.info(f"Competition {competition_id} reverted to ACTIVE")
        return True

    @staticmethod
    def _read(db: Session, competition: Competition) -> CompetitionRead:
        read = CompetitionRead.model_validate(competition)
        read.participant_count = count_participations(db, competition.id)
        return read
