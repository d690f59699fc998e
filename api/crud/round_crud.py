from sqlalchemy.orm import Session
from sqlalchemy import func
from typing import List
from models.round import Round, RoundStatus
from models.city import CompetitionCity
from models.round_participation import RoundParticipation
from models.round_score import RoundScore


def create_round(db: Session, competition_id: int, city_id: int, round_number: int, name: str,
                 round_date=None, is_finale: bool = False):
    db_round = Round(
        competition_id=competition_id,
        city_id=city_id,
        round_number=round_number,
        name=name,
        round_date=round_date,
        is_finale=is_finale,
        status=RoundStatus.PENDING
    )
    db.add(db_round)
    db.flush()
    return db_round


def get_round(db: Session, round_id: int):
    return db.query(Round).filter(Round.id == round_id).first()


def get_round_for_update(db: Session, round_id: int):
    """Row-locks the round; SQLite ignores FOR UPDATE"""
    return db.query(Round).filter(Round.id == round_id).with_for_update().first()


def get_round_by_number(db: Session, competition_id: int, city_id: int, round_number: int):
    return db.query(Round).filter(
        Round.competition_id == competition_id,
        Round.city_id == city_id,
        Round.round_number == round_number
    ).first()


def get_finale(db: Session, competition_id: int, city_id: int, exclude_round_id: int = None):
    query = db.query(Round).filter(
        Round.competition_id == competition_id,
        Round.city_id == city_id,
        Round.is_finale.is_(True)
    )
    if exclude_round_id is not None:
        query = query.filter(Round.id != exclude_round_id)
    return query.first()


def get_branch_rounds(db: Session, competition_id: int, city_id: int) -> List[Round]:
    return db.query(Round).filter(
        Round.competition_id == competition_id,
        Round.city_id == city_id
    ).order_by(Round.round_number).all()


def get_competition_rounds(db: Session, competition_id: int) -> List[Round]:
    return db.query(Round).filter(
        Round.competition_id == competition_id
    ).order_by(Round.city_id, Round.round_number).all()


def has_subsequent_rounds(db: Session, db_round: Round) -> bool:
    return db.query(Round.id).filter(
        Round.competition_id == db_round.competition_id,
        Round.city_id == db_round.city_id,
        Round.round_number > db_round.round_number
    ).first() is not None


def count_incomplete_rounds(db: Session, competition_id: int, city_id: int) -> int:
    """Rounds that are neither completed nor archived"""
    return db.query(func.count(Round.id)).filter(
        Round.competition_id == competition_id,
        Round.city_id == city_id,
        Round.status.notin_([RoundStatus.COMPLETED, RoundStatus.ARCHIVED])
    ).scalar() or 0


def count_cities_with_completed_finale(db: Session, competition_id: int) -> int:
    """Branch cities whose finale is completed; rounds of cities outside the competition never count"""
    return db.query(func.count(func.distinct(Round.city_id))).join(
        CompetitionCity,
        (CompetitionCity.competition_id == Round.competition_id) & (CompetitionCity.city_id == Round.city_id)
    ).filter(
        Round.competition_id == competition_id,
        Round.is_finale.is_(True),
        Round.status == RoundStatus.COMPLETED
    ).scalar() or 0


def set_round_status(db: Session, db_round: Round, status: RoundStatus):
    db_round.status = status
    db.flush()
    return db_round


def round_counts(db: Session, round_id: int):
    """(participant_count, scored_count) for one round"""
    participant_count = db.query(func.count(RoundParticipation.id)).filter(
        RoundParticipation.round_id == round_id
    ).scalar() or 0
    scored_count = db.query(func.count(RoundScore.id)).join(
        RoundParticipation, RoundParticipation.id == RoundScore.round_participation_id
    ).filter(
        RoundParticipation.round_id == round_id,
        RoundScore.score.isnot(None)
    ).scalar() or 0
    return participant_count, scored_count


def delete_round(db: Session, db_round: Round):
    """Scores go first, then memberships, then the round itself"""
    entry_ids = db.query(RoundParticipation.id).filter(RoundParticipation.round_id == db_round.id)
    db.query(RoundScore).filter(
        RoundScore.round_participation_id.in_(entry_ids.scalar_subquery())
    ).delete(synchronize_session=False)
    db.query(RoundParticipation).filter(
        RoundParticipation.round_id == db_round.id
    ).delete(synchronize_session=False)
    db.delete(db_round)
    db.flush()
