import logging
from collections import OrderedDict
from datetime import date
from typing import List, Optional
from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session
from db import Store
from models.round import Round, RoundStatus
from models.round_participation import QualifiedBy
from schemas.round import RoundCreate, RoundUpdate, RoundSummary, PromotionResult, WinnerImportSelection
from api.crud.round_crud import (
    create_round, get_round_by_number, get_finale, has_subsequent_rounds, set_round_status,
    round_counts, delete_round
)
from api.crud.participation_crud import get_competition_participations
from api.crud.round_participation_crud import (
    add_entry, add_entry_if_absent, get_entry, get_top_scored_entries, delete_entry, get_past_winner_scores
)
from api.crud.score_crud import recalculate_ranks
from core.exceptions import (
    DuplicateFinale, DuplicateRound, NoNextRound, AlreadyInRound, NotInRound, NotArchived, NoFieldsToUpdate,
    HasSubsequentRounds, InvalidOperation
)
from core.validators import (
    validate_competition_exists, validate_branch_exists, validate_round_exists, validate_participation_exists,
    validate_positive_count
)

logger = logging.getLogger(__name__)


def round_summary(db: Session, db_round: Round) -> RoundSummary:
    participant_count, scored_count = round_counts(db, db_round.id)
    return RoundSummary(
        id=db_round.id,
        competition_id=db_round.competition_id,
        city_id=db_round.city_id,
        round_number=db_round.round_number,
        name=db_round.name,
        round_date=db_round.round_date,
        is_finale=db_round.is_finale,
        status=db_round.status,
        created_at=db_round.created_at,
        city_name=db_round.city.name,
        participant_count=participant_count,
        scored_count=scored_count,
    )


def recalculate_ranks_in(db: Session, round_id: int) -> int:
    """Rank recalculation inside an already open transaction; returns scored rows"""
    rows = recalculate_ranks(db, round_id)
    return len([row for row in rows if row.rank_in_round is not None])


class RoundProgressionEngine:
    """
    Rounds of one competition-city: creation with opening-round enrollment,
    promotion of top scorers, manual membership changes and rank upkeep.
    """

    def __init__(self, store: Store):
        self.store = store

    def create_round(self, competition_id: int, city_id: int, round_number: int, name: str,
                     round_date: date = None, is_finale: bool = False,
                     operator_id: int = None) -> RoundSummary:
        data = RoundCreate(
            competition_id=competition_id,
            city_id=city_id,
            round_number=round_number,
            name=name,
            round_date=round_date,
            is_finale=is_finale,
        )

        with self.store.transaction() as db:
            validate_competition_exists(db, data.competition_id)
            branch = validate_branch_exists(db, data.competition_id, data.city_id)

            if data.is_finale:
                existing = get_finale(db, data.competition_id, data.city_id)
                if existing:
                    raise DuplicateFinale(existing.name)

            if get_round_by_number(db, data.competition_id, data.city_id, data.round_number):
                raise DuplicateRound(data.round_number)

            # Without an explicit date the round happens on the city's event day
            if data.round_date is None:
                data.round_date = branch.event_date

            db_round = create_round(
                db, data.competition_id, data.city_id, data.round_number, data.name,
                data.round_date, data.is_finale
            )

            enrolled = 0
            if data.round_number == 1:
                enrolled = self._enroll_branch(db, db_round, operator_id)

            logger.info(
                f"Round {db_round.id} ({data.name}) created for competition {data.competition_id} "
                f"city {data.city_id}, {enrolled} participants enrolled"
            )
            return round_summary(db, db_round)

    def update_round(self, round_id: int, data: RoundUpdate) -> RoundSummary:
        update_data = data.dict(exclude_unset=True)
        if not update_data:
            raise NoFieldsToUpdate()

        with self.store.transaction() as db:
            db_round = validate_round_exists(db, round_id)

            if update_data.get("is_finale"):
                existing = get_finale(db, db_round.competition_id, db_round.city_id, exclude_round_id=round_id)
                if existing:
                    raise DuplicateFinale(existing.name)

            for field, value in update_data.items():
                setattr(db_round, field, value)
            db.flush()
            return round_summary(db, db_round)

    def enroll_first_round(self, round_id: int, operator_id: int = None) -> int:
        """Re-run opening-round enrollment; returns the number of new memberships"""
        with self.store.transaction() as db:
            db_round = validate_round_exists(db, round_id)
            if db_round.round_number != 1:
                return 0
            return self._enroll_branch(db, db_round, operator_id)

    def promote_to_next_round(self, round_id: int, count: int, operator_id: int = None) -> PromotionResult:
        validate_positive_count(count)

        with self.store.transaction() as db:
            db_round = validate_round_exists(db, round_id)
            next_round = get_round_by_number(
                db, db_round.competition_id, db_round.city_id, db_round.round_number + 1
            )
            if not next_round:
                raise NoNextRound()

            promoted = 0
            for entry in get_top_scored_entries(db, round_id, count):
                if add_entry_if_absent(db, next_round.id, entry.participation_id, QualifiedBy.AUTOMATIC, operator_id):
                    promoted += 1

            set_round_status(db, db_round, RoundStatus.COMPLETED)
            logger.info(
                f"Round {round_id}: promoted {promoted} of top {count} into round {next_round.id}"
            )
            return PromotionResult(promoted=promoted, next_round_id=next_round.id)

    def add_participant_to_round(self, round_id: int, participation_id: int, operator_id: int = None) -> dict:
        with self.store.transaction() as db:
            db_round = validate_round_exists(db, round_id)
            participation = validate_participation_exists(db, participation_id)

            # Later rounds and finales may take winners from other cities, never from other competitions
            if participation.competition_id != db_round.competition_id:
                raise InvalidOperation("Participation belongs to another competition")
            if db_round.round_number == 1 and participation.city_id != db_round.city_id:
                raise InvalidOperation("Opening round only accepts participants of its own city")

            try:
                with db.begin_nested():
                    entry = add_entry(db, round_id, participation_id, QualifiedBy.MANUAL, operator_id)
            except IntegrityError:
                raise AlreadyInRound()

            logger.info(f"Participation {participation_id} manually added to round {round_id}")
            return {"round_participation_id": entry.id, "round_id": round_id, "participation_id": participation_id}

    def remove_participant_from_round(self, round_id: int, participation_id: int):
        with self.store.transaction() as db:
            entry = get_entry(db, round_id, participation_id)
            if not entry:
                raise NotInRound()
            delete_entry(db, entry)
            recalculate_ranks(db, round_id)
            logger.info(f"Participation {participation_id} removed from round {round_id}")

    def recalculate_ranks(self, round_id: int) -> int:
        with self.store.transaction() as db:
            validate_round_exists(db, round_id)
            return recalculate_ranks_in(db, round_id)

    def delete_round(self, round_id: int) -> dict:
        with self.store.transaction() as db:
            db_round = validate_round_exists(db, round_id)
            if has_subsequent_rounds(db, db_round):
                raise HasSubsequentRounds()
            delete_round(db, db_round)
            logger.info(f"Round {round_id} deleted")
            return {"deleted": True, "round_id": round_id}

    def archive_round(self, round_id: int) -> dict:
        with self.store.transaction() as db:
            db_round = validate_round_exists(db, round_id)
            set_round_status(db, db_round, RoundStatus.ARCHIVED)
            return {"archived": True, "round_id": round_id}

    def unarchive_round(self, round_id: int) -> dict:
        with self.store.transaction() as db:
            db_round = validate_round_exists(db, round_id)
            if db_round.status != RoundStatus.ARCHIVED:
                raise NotArchived()
            set_round_status(db, db_round, RoundStatus.PENDING)
            return {"unarchived": True, "round_id": round_id}

    # Winner import for later rounds and grand finales
    def available_winners_for_import(self, round_id: int) -> List[dict]:
        """
        Past winners not yet in the round, grouped by city.

        A finale looks at every city of the competition, any other round only
        at the earlier rounds of its own city.
        """
        with self.store.transaction() as db:
            db_round = validate_round_exists(db, round_id)
            if db_round.is_finale:
                rows = get_past_winner_scores(db, db_round.competition_id, round_id)
            else:
                rows = get_past_winner_scores(
                    db, db_round.competition_id, round_id,
                    city_id=db_round.city_id, before_round_number=db_round.round_number
                )

            cities = OrderedDict()
            seen = set()
            for participation, score in rows:
                if participation.id in seen:
                    continue
                seen.add(participation.id)
                group = cities.setdefault(participation.city_id, {
                    "city_id": participation.city_id,
                    "city_name": participation.city.name,
                    "winner_count": 0,
                    "winners": [],
                })
                group["winners"].append({
                    "participation_id": participation.id,
                    "user_id": participation.user_id,
                    "full_name": participation.user.full_name,
                    "position": score.winner_position or score.rank_in_round,
                    "score": score.score,
                })
                group["winner_count"] += 1

            return sorted(cities.values(), key=lambda c: c["city_name"])

    def import_selected_winners(self, round_id: int, selections: List[WinnerImportSelection],
                                operator_id: int = None) -> dict:
        """Top `count` past winners of each selected city, by best score, as MANUAL entries"""
        selections = [
            s if isinstance(s, WinnerImportSelection) else WinnerImportSelection(**s)
            for s in selections
        ]

        with self.store.transaction() as db:
            db_round = validate_round_exists(db, round_id)
            imported = 0
            for selection in selections:
                rows = get_past_winner_scores(db, db_round.competition_id, round_id, city_id=selection.city_id)
                picked = []
                for participation, _score in rows:
                    if participation.id not in picked:
                        picked.append(participation.id)
                    if len(picked) >= selection.count:
                        break

                for participation_id in picked:
                    if add_entry_if_absent(db, round_id, participation_id, QualifiedBy.MANUAL, operator_id):
                        imported += 1

            logger.info(f"Round {round_id}: imported {imported} selected past winners")
            return {"imported_count": imported}

    def import_all_winners(self, round_id: int, operator_id: int = None) -> dict:
        """Every past winner of the competition, insert-if-absent"""
        with self.store.transaction() as db:
            db_round = validate_round_exists(db, round_id)
            imported = 0
            for participation, _score in get_past_winner_scores(db, db_round.competition_id, round_id):
                if add_entry_if_absent(db, round_id, participation.id, QualifiedBy.AUTOMATIC, operator_id):
                    imported += 1

            logger.info(f"Round {round_id}: imported {imported} past winners")
            return {"imported_count": imported}

    @staticmethod
    def _enroll_branch(db: Session, db_round: Round, operator_id: Optional[int]) -> int:
        enrolled = 0
        for participation in get_competition_participations(db, db_round.competition_id, db_round.city_id):
            if add_entry_if_absent(db, db_round.id, participation.id, QualifiedBy.AUTOMATIC, operator_id):
                enrolled += 1
        return enrolled
