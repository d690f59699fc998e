import logging
from typing import List, Optional, Union
from pydantic import ValidationError
from db import Store
from models.result import ResultStatus
from schemas.result import ResultAssign, ResultRead, ResultWithParticipant
from api.crud.result_crud import get_result_by_participation, create_result, get_results
from core.exceptions import CompetitionException, ResultLocked
from core.validators import validate_participation_exists, validate_result_exists, validate_competition_exists

logger = logging.getLogger(__name__)


def _with_participant(result) -> ResultWithParticipant:
    participation = result.participation
    return ResultWithParticipant(
        id=result.id,
        participation_id=result.participation_id,
        result_status=result.result_status,
        position=result.position,
        locked=result.locked,
        created_at=result.created_at,
        user_id=participation.user_id,
        full_name=participation.user.full_name,
        email=participation.user.email,
        mi_id=participation.user.mi_id,
        competition_id=participation.competition_id,
        city_id=participation.city_id,
        city_name=participation.city.name,
    )


class ResultService:
    """Manual result assignment, locking and the read contract for certificates"""

    def __init__(self, store: Store):
        self.store = store

    def assign_result(self, participation_id: int, result_status: ResultStatus, position: int = None) -> dict:
        data = ResultAssign(participation_id=participation_id, result_status=result_status, position=position)

        with self.store.transaction() as db:
            validate_participation_exists(db, data.participation_id)
            existing = get_result_by_participation(db, data.participation_id)

            if existing:
                if existing.locked:
                    raise ResultLocked()
                existing.result_status = data.result_status
                existing.position = data.position
                db.flush()
                return {"id": existing.id, "updated": True}

            result = create_result(db, data.participation_id, data.result_status, data.position)
            logger.info(f"Result {result.id} assigned to participation {data.participation_id}")
            return {"id": result.id, "created": True}

    def bulk_assign_results(self, items: List[Union[ResultAssign, dict]]) -> dict:
        """Each item in its own transaction; one failure never aborts the batch"""
        outcome = {"success": [], "failed": []}

        for item in items:
            try:
                data = item if isinstance(item, ResultAssign) else ResultAssign(**item)
            except ValidationError as e:
                participation_id = item.get("participation_id") if isinstance(item, dict) else None
                outcome["failed"].append({"participation_id": participation_id, "error": e.errors()[0]["msg"]})
                continue

            try:
                self.assign_result(data.participation_id, data.result_status, data.position)
                outcome["success"].append(data.participation_id)
            except CompetitionException as e:
                outcome["failed"].append({"participation_id": data.participation_id, "error": e.detail})

        logger.info(f"Bulk result assignment: {len(outcome['success'])} ok, {len(outcome['failed'])} failed")
        return outcome

    def lock_result(self, result_id: int) -> ResultRead:
        return self._set_locked(result_id, True)

    def unlock_result(self, result_id: int) -> ResultRead:
        return self._set_locked(result_id, False)

    def results_by_competition(self, competition_id: int) -> List[ResultWithParticipant]:
        with self.store.transaction() as db:
            validate_competition_exists(db, competition_id)
            return [_with_participant(r) for r in get_results(db, competition_id=competition_id)]

    def certificate_eligible_results(self, competition_id: Optional[int] = None, city_id: Optional[int] = None,
                                     result_status: Optional[ResultStatus] = None) -> List[ResultWithParticipant]:
        """Read-only view of Results filtered by competition, city and status"""
        with self.store.transaction() as db:
            return [
                _with_participant(r)
                for r in get_results(db, competition_id=competition_id, city_id=city_id, result_status=result_status)
            ]

    def _set_locked(self, result_id: int, locked: bool) -> ResultRead:
        with self.store.transaction() as db:
            result = validate_result_exists(db, result_id)
            result.locked = locked
            db.flush()
            logger.info(f"Result {result_id} {'locked' if locked else 'unlocked'}")
            return ResultRead.model_validate(result)
