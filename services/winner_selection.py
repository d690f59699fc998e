"""
Finale winner selection and materialization of canonical Results.

Results of a competition-city are always replaced wholesale (delete, then
insert one row per flagged finale winner) so they never keep winners from an
earlier selection pass. Replacement does not look at Result.locked; locked
rows that get replaced are logged.
"""
import logging
from datetime import datetime, timezone
from typing import List, Union
from pydantic import ValidationError
from sqlalchemy.orm import Session
from db import Store
from models.competition import CompetitionStatus
from models.round import RoundStatus
from models.result import ResultStatus
from schemas.result import WinnerEntry, WinnerSelection, CompetitionCityStatus, CityStatusRound
from api.crud.round_crud import (
    get_round_for_update, get_finale, get_branch_rounds, count_incomplete_rounds, set_round_status
)
from api.crud.city_crud import get_branch
from api.crud.round_participation_crud import get_round_participation
from api.crud.score_crud import get_score, create_score, reset_winner_flags, get_round_winners
from api.crud.result_crud import create_result, delete_branch_results
from core.exceptions import RoundNotFound, NotFinale, NotInRound, AlreadyFinished, IncompleteRounds, InvalidOperation
from core.validators import validate_branch_exists, validate_competition_exists
from services.events import CompletionEvents
from services.competition_lifecycle import CompetitionLifecycleController

logger = logging.getLogger(__name__)


def result_status_for(position: int) -> ResultStatus:
    return ResultStatus.WINNER if position == 1 else ResultStatus.FINALIST


def replace_branch_results(db: Session, competition_id: int, city_id: int, finale_round_id: int = None) -> int:
    """Delete the branch's Results, then insert one per flagged finale winner"""
    delete_branch_results(db, competition_id, city_id)
    if finale_round_id is None:
        return 0

    added = 0
    for entry in get_round_winners(db, finale_round_id):
        position = entry.score.winner_position
        create_result(db, entry.participation_id, result_status_for(position), position)
        added += 1
    return added


class WinnerSelectionService:

    def __init__(self, store: Store, events: CompletionEvents, lifecycle: CompetitionLifecycleController):
        self.store = store
        self.events = events
        self.lifecycle = lifecycle

    def select_winners(self, round_id: int, winners: List[Union[WinnerEntry, dict]],
                       operator_id: int = None) -> dict:
        try:
            selection = WinnerSelection(winners=winners)
        except ValidationError as e:
            raise InvalidOperation(f"Invalid winners: {e.errors()[0]['msg']}")

        # Reset-then-set is not isolated, writers of one round must not interleave
        with self.store.round_lock(round_id):
            with self.store.transaction() as db:
                db_round = get_round_for_update(db, round_id)
                if not db_round:
                    raise RoundNotFound()
                if not db_round.is_finale:
                    raise NotFinale()

                entries = []
                for winner in selection.winners:
                    entry = get_round_participation(db, winner.round_participation_id)
                    if not entry or entry.round_id != round_id:
                        raise NotInRound()
                    entries.append((entry, winner.position))

                reset_winner_flags(db, round_id)
                # Bulk reset bypasses the identity map
                db.expire_all()

                for entry, position in entries:
                    db_score = get_score(db, entry.id)
                    if not db_score:
                        db_score = create_score(db, entry.id, None, None, operator_id)
                    db_score.is_winner = True
                    db_score.winner_position = position
                db.flush()

                set_round_status(db, db_round, RoundStatus.COMPLETED)

                branch = get_branch(db, db_round.competition_id, db_round.city_id)
                if branch:
                    branch.registration_open = False

                results_added = replace_branch_results(db, db_round.competition_id, db_round.city_id, round_id)

                logger.info(
                    f"Round {round_id}: {len(entries)} winners selected by operator {operator_id}, "
                    f"{results_added} results written"
                )
                return {"round_id": round_id, "winners": len(entries), "results_added": results_added}

    def mark_competition_city_finished(self, competition_id: int, city_id: int, operator_id: int = None) -> dict:
        with self.store.transaction() as db:
            branch = validate_branch_exists(db, competition_id, city_id)
            if branch.finished_at is not None:
                raise AlreadyFinished()

            pending = count_incomplete_rounds(db, competition_id, city_id)
            if pending > 0:
                raise IncompleteRounds(pending)

            branch.registration_open = False
            branch.finished_at = datetime.now(timezone.utc)

            finale = get_finale(db, competition_id, city_id)
            winners_added = replace_branch_results(db, competition_id, city_id, finale.id if finale else None)

            self.events.city_finished(db, competition_id=competition_id, city_id=city_id)
            competition = validate_competition_exists(db, competition_id)

            logger.info(
                f"Competition {competition_id} city {city_id} marked finished by operator {operator_id}, "
                f"{winners_added} results written"
            )
            return {
                "winners_added": winners_added,
                "competition_completed": competition.status == CompetitionStatus.COMPLETED,
            }

    def reopen_competition_city(self, competition_id: int, city_id: int, operator_id: int = None) -> dict:
        with self.store.transaction() as db:
            branch = validate_branch_exists(db, competition_id, city_id)
            branch.registration_open = True
            branch.finished_at = None
            removed = delete_branch_results(db, competition_id, city_id)
            reverted = self.lifecycle.revert_completion(db, competition_id)

            logger.info(
                f"Competition {competition_id} city {city_id} reopened by operator {operator_id}, "
                f"{removed} results removed"
            )
            return {"results_removed": removed, "competition_reverted": reverted}

    def competition_city_status(self, competition_id: int, city_id: int) -> CompetitionCityStatus:
        with self.store.transaction() as db:
            branch = validate_branch_exists(db, competition_id, city_id)
            rounds = get_branch_rounds(db, competition_id, city_id)
            active_rounds = [r for r in rounds if r.status != RoundStatus.ARCHIVED]

            has_finale = any(r.is_finale for r in rounds)
            finale_completed = any(r.is_finale and r.status == RoundStatus.COMPLETED for r in rounds)
            all_rounds_completed = bool(active_rounds) and all(
                r.status == RoundStatus.COMPLETED for r in active_rounds
            )
            is_finished = branch.finished_at is not None

            return CompetitionCityStatus(
                rounds=[
                    CityStatusRound(
                        id=r.id,
                        round_number=r.round_number,
                        name=r.name,
                        is_finale=r.is_finale,
                        status=r.status.value,
                    )
                    for r in rounds
                ],
                has_finale=has_finale,
                finale_completed=finale_completed,
                all_rounds_completed=all_rounds_completed,
                is_finished=is_finished,
                can_mark_finished=finale_completed and all_rounds_completed and not is_finished,
            )
