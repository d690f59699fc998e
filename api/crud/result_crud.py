import logging
from sqlalchemy.orm import Session, joinedload
from typing import List
from models.result import Result, ResultStatus
from models.participation import Participation
from models.user import User

logger = logging.getLogger(__name__)


def get_result(db: Session, result_id: int):
    return db.query(Result).filter(Result.id == result_id).first()


def get_result_by_participation(db: Session, participation_id: int):
    return db.query(Result).filter(Result.participation_id == participation_id).first()


def create_result(db: Session, participation_id: int, result_status: ResultStatus, position: int = None):
    db_result = Result(
        participation_id=participation_id,
        result_status=result_status,
        position=position,
        locked=False
    )
    db.add(db_result)
    db.flush()
    return db_result


def delete_branch_results(db: Session, competition_id: int, city_id: int) -> int:
    """Remove every Result of one competition-city, locked ones included"""
    results = db.query(Result).join(
        Participation, Participation.id == Result.participation_id
    ).filter(
        Participation.competition_id == competition_id,
        Participation.city_id == city_id
    ).all()

    for result in results:
        if result.locked:
            logger.warning(
                f"Replacing locked result {result.id} (participation {result.participation_id}) "
                f"for competition {competition_id}, city {city_id}"
            )
        db.delete(result)

    db.flush()
    return len(results)


def get_results(db: Session, competition_id: int = None, city_id: int = None,
                result_status: ResultStatus = None) -> List[Result]:
    """Results with participant data, by position (unplaced last) then name"""
    query = db.query(Result).options(
        joinedload(Result.participation).joinedload(Participation.user),
        joinedload(Result.participation).joinedload(Participation.city)
    ).join(
        Participation, Participation.id == Result.participation_id
    ).join(
        User, User.id == Participation.user_id
    )
    if competition_id is not None:
        query = query.filter(Participation.competition_id == competition_id)
    if city_id is not None:
        query = query.filter(Participation.city_id == city_id)
    if result_status is not None:
        query = query.filter(Result.result_status == result_status)

    return query.order_by(Result.position.is_(None), Result.position, User.full_name).all()
