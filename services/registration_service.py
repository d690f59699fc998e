import logging
from typing import List
from sqlalchemy.orm import Session
from db import Store
from models.participation import Participation, ParticipationSource
from models.round_participation import RoundParticipation, QualifiedBy
from models.round import Round
from api.crud.participation_crud import (
    create_participation, get_participation_by_ids, get_competition_participations, get_user_participations
)
from api.crud.round_crud import get_round_by_number
from api.crud.round_participation_crud import add_entry_if_absent
from core.exceptions import AlreadyRegistered
from core.validators import (
    validate_competition_exists, validate_branch_exists, validate_user_exists, validate_registration_open
)

logger = logging.getLogger(__name__)


class RegistrationService:
    """Participations: self registration and operator-added participants"""

    def __init__(self, store: Store):
        self.store = store

    def register(self, user_id: int, competition_id: int, city_id: int) -> dict:
        with self.store.transaction() as db:
            validate_user_exists(db, user_id)
            competition = validate_competition_exists(db, competition_id)
            branch = validate_branch_exists(db, competition_id, city_id)
            validate_registration_open(competition, branch)

            participation = self._create(db, user_id, competition_id, city_id, ParticipationSource.USER_SELF)
            logger.info(f"User {user_id} registered for competition {competition_id} in city {city_id}")
            return self._registration_result(db, participation)

    def add_participant(self, user_id: int, competition_id: int, city_id: int) -> dict:
        """Operator path, ignores both registration flags"""
        with self.store.transaction() as db:
            validate_user_exists(db, user_id)
            validate_competition_exists(db, competition_id)
            validate_branch_exists(db, competition_id, city_id)

            participation = self._create(db, user_id, competition_id, city_id, ParticipationSource.ADMIN_ADDED)
            logger.info(f"User {user_id} added to competition {competition_id} in city {city_id}")
            return self._registration_result(db, participation)

    def list_participants(self, competition_id: int) -> List[dict]:
        with self.store.transaction() as db:
            validate_competition_exists(db, competition_id)
            return [
                {
                    "participation_id": p.id,
                    "user_id": p.user_id,
                    "full_name": p.user.full_name,
                    "email": p.user.email,
                    "mi_id": p.user.mi_id,
                    "city_id": p.city_id,
                    "city_name": p.city.name,
                    "source": p.source.value,
                    "registered_at": p.registered_at,
                    "result_status": p.result.result_status.value if p.result else None,
                    "position": p.result.position if p.result else None,
                }
                for p in get_competition_participations(db, competition_id)
            ]

    def user_registrations(self, user_id: int) -> List[dict]:
        """Each registration with the furthest round reached and its score"""
        with self.store.transaction() as db:
            validate_user_exists(db, user_id)
            registrations = []
            for p in get_user_participations(db, user_id):
                latest = db.query(RoundParticipation).join(
                    Round, Round.id == RoundParticipation.round_id
                ).filter(
                    RoundParticipation.participation_id == p.id
                ).order_by(Round.round_number.desc()).first()

                score = latest.score if latest else None
                registrations.append({
                    "participation_id": p.id,
                    "competition_id": p.competition_id,
                    "competition_name": p.competition.name,
                    "competition_status": p.competition.status.value,
                    "city_id": p.city_id,
                    "city_name": p.city.name,
                    "registered_at": p.registered_at,
                    "current_round": latest.round.round_number if latest else None,
                    "current_round_name": latest.round.name if latest else None,
                    "score": score.score if score else None,
                    "rank_in_round": score.rank_in_round if score else None,
                    "is_winner": score.is_winner if score else False,
                    "winner_position": score.winner_position if score else None,
                })
            return registrations

    @staticmethod
    def _create(db: Session, user_id: int, competition_id: int, city_id: int,
                source: ParticipationSource) -> Participation:
        if get_participation_by_ids(db, user_id, competition_id, city_id):
            raise AlreadyRegistered()

        participation = create_participation(db, user_id, competition_id, city_id, source)

        # Late registrations join the opening round if it already exists
        first_round = get_round_by_number(db, competition_id, city_id, 1)
        if first_round:
            add_entry_if_absent(db, first_round.id, participation.id, QualifiedBy.AUTOMATIC)
            logger.info(f"Participation {participation.id} auto-enrolled into round {first_round.id}")
        return participation

    @staticmethod
    def _registration_result(db: Session, participation: Participation) -> dict:
        first_round = get_round_by_number(db, participation.competition_id, participation.city_id, 1)
        return {
            "participation_id": participation.id,
            "user_id": participation.user_id,
            "competition_id": participation.competition_id,
            "city_id": participation.city_id,
            "source": participation.source.value,
            "round_1_id": first_round.id if first_round else None,
        }
