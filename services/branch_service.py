import logging
from datetime import date
from typing import List
from db import Store
from schemas.competition import CityRead, BranchRead
from api.crud.city_crud import (
    create_city, get_city_by_name, get_active_cities, add_branch, get_branch, delete_branch,
    count_branch_rounds
)
from api.crud.competition_crud import count_participations
from core.exceptions import CityAlreadyExists, CityAlreadyAdded, HasParticipants, HasRounds, InvalidOperation
from core.validators import validate_competition_exists, validate_city_exists, validate_branch_exists

logger = logging.getLogger(__name__)


def _branch_read(branch, participant_count: int = 0) -> BranchRead:
    return BranchRead(
        id=branch.id,
        competition_id=branch.competition_id,
        city_id=branch.city_id,
        city_name=branch.city.name,
        event_date=branch.event_date,
        registration_open=branch.registration_open,
        finished_at=branch.finished_at,
        participant_count=participant_count,
    )


class BranchService:
    """City catalog and the competition's per-city branches"""

    def __init__(self, store: Store):
        self.store = store

    def create_city(self, name: str) -> CityRead:
        if not name or not name.strip():
            raise InvalidOperation("City name is required")

        with self.store.transaction() as db:
            if get_city_by_name(db, name):
                raise CityAlreadyExists()
            city = create_city(db, name)
            logger.info(f"City {city.id} '{city.name}' created")
            return CityRead.model_validate(city)

    def list_active_cities(self) -> List[CityRead]:
        with self.store.transaction() as db:
            return [CityRead.model_validate(city) for city in get_active_cities(db)]

    def add_city(self, competition_id: int, city_id: int, event_date: date = None) -> BranchRead:
        with self.store.transaction() as db:
            validate_competition_exists(db, competition_id)
            validate_city_exists(db, city_id)
            if get_branch(db, competition_id, city_id):
                raise CityAlreadyAdded()
            branch = add_branch(db, competition_id, city_id, event_date)
            logger.info(f"City {city_id} added to competition {competition_id}")
            return _branch_read(branch)

    def remove_city(self, competition_id: int, city_id: int):
        with self.store.transaction() as db:
            branch = validate_branch_exists(db, competition_id, city_id)
            if count_participations(db, competition_id, city_id) > 0:
                raise HasParticipants("city")
            if count_branch_rounds(db, competition_id, city_id) > 0:
                raise HasRounds()
            delete_branch(db, branch)
            logger.info(f"City {city_id} removed from competition {competition_id}")

    def update_event_date(self, competition_id: int, city_id: int, event_date: date = None) -> BranchRead:
        with self.store.transaction() as db:
            branch = validate_branch_exists(db, competition_id, city_id)
            branch.event_date = event_date
            db.flush()
            return _branch_read(branch, count_participations(db, competition_id, city_id))

    def toggle_city_registration(self, competition_id: int, city_id: int, is_open: bool) -> BranchRead:
        with self.store.transaction() as db:
            branch = validate_branch_exists(db, competition_id, city_id)
            branch.registration_open = bool(is_open)
            db.flush()
            logger.info(
                f"Competition {competition_id} city {city_id} registration {'opened' if is_open else 'closed'}"
            )
            return _branch_read(branch, count_participations(db, competition_id, city_id))
