from sqlalchemy.orm import Session, joinedload
from sqlalchemy import select
from typing import List
from models.round_participation import RoundParticipation, QualifiedBy
from models.round_score import RoundScore
from models.participation import Participation
from models.user import User
from models.round import Round


def get_round_participation(db: Session, round_participation_id: int):
    return db.query(RoundParticipation).filter(RoundParticipation.id == round_participation_id).first()


def get_entry(db: Session, round_id: int, participation_id: int):
    return db.query(RoundParticipation).filter(
        RoundParticipation.round_id == round_id,
        RoundParticipation.participation_id == participation_id
    ).first()


def add_entry(db: Session, round_id: int, participation_id: int,
              qualified_by: QualifiedBy = QualifiedBy.AUTOMATIC, admin_id: int = None):
    entry = RoundParticipation(
        round_id=round_id,
        participation_id=participation_id,
        qualified_by=qualified_by,
        added_by_admin_id=admin_id
    )
    db.add(entry)
    db.flush()
    return entry


def add_entry_if_absent(db: Session, round_id: int, participation_id: int,
                        qualified_by: QualifiedBy = QualifiedBy.AUTOMATIC, admin_id: int = None) -> bool:
    """
    Insert-if-absent membership. Returns True only when a row was created,
    so repeated enrollments and promotions never duplicate or fail.
    """
    if get_entry(db, round_id, participation_id):
        return False
    add_entry(db, round_id, participation_id, qualified_by, admin_id)
    return True


def get_round_entries(db: Session, round_id: int) -> List[RoundParticipation]:
    return db.query(RoundParticipation).options(
        joinedload(RoundParticipation.participation).joinedload(Participation.user),
        joinedload(RoundParticipation.score)
    ).filter(
        RoundParticipation.round_id == round_id
    ).order_by(RoundParticipation.id).all()


def get_round_participation_ids(db: Session, round_id: int) -> set:
    rows = db.query(RoundParticipation.participation_id).filter(RoundParticipation.round_id == round_id).all()
    return {participation_id for (participation_id,) in rows}


def find_entry_by_identifier(db: Session, round_id: int, mi_id: str = None, email: str = None):
    """Round membership of the user matching mi_id, or email when no mi_id is given"""
    if mi_id:
        condition = User.mi_id == mi_id
    elif email:
        condition = User.email == email
    else:
        return None

    return db.query(RoundParticipation).join(
        Participation, Participation.id == RoundParticipation.participation_id
    ).join(
        User, User.id == Participation.user_id
    ).filter(
        RoundParticipation.round_id == round_id,
        condition
    ).first()


def get_top_scored_entries(db: Session, round_id: int, count: int) -> List[RoundParticipation]:
    """Best scores first; equal scores keep enrollment order"""
    return db.query(RoundParticipation).join(
        RoundScore, RoundScore.round_participation_id == RoundParticipation.id
    ).filter(
        RoundParticipation.round_id == round_id,
        RoundScore.score.isnot(None)
    ).order_by(
        RoundScore.score.desc(), RoundParticipation.id.asc()
    ).limit(count).all()


def delete_entry(db: Session, entry: RoundParticipation):
    if entry.score is not None:
        db.delete(entry.score)
    db.delete(entry)
    db.flush()


def get_past_winner_scores(db: Session, competition_id: int, exclude_round_id: int,
                           city_id: int = None, before_round_number: int = None):
    """
    (Participation, RoundScore) pairs flagged as winners in any round of the
    competition, for participations not yet in exclude_round_id.
    """
    already_in = select(RoundParticipation.participation_id).where(
        RoundParticipation.round_id == exclude_round_id
    )
    query = db.query(Participation, RoundScore).join(
        RoundParticipation, RoundParticipation.participation_id == Participation.id
    ).join(
        RoundScore, RoundScore.round_participation_id == RoundParticipation.id
    ).join(
        Round, Round.id == RoundParticipation.round_id
    ).options(
        joinedload(Participation.user),
        joinedload(Participation.city)
    ).filter(
        Participation.competition_id == competition_id,
        RoundScore.is_winner.is_(True),
        Participation.id.notin_(already_in)
    )
    if city_id is not None:
        query = query.filter(Participation.city_id == city_id)
    if before_round_number is not None:
        query = query.filter(Round.round_number < before_round_number)

    return query.order_by(RoundScore.score.is_(None), RoundScore.score.desc(), Participation.id).all()


def get_past_winner_ids(db: Session, competition_id: int) -> set:
    """Participation ids that won any round of the competition"""
    rows = db.query(RoundParticipation.participation_id).join(
        RoundScore, RoundScore.round_participation_id == RoundParticipation.id
    ).join(
        Participation, Participation.id == RoundParticipation.participation_id
    ).filter(
        Participation.competition_id == competition_id,
        RoundScore.is_winner.is_(True)
    ).distinct().all()
    return {participation_id for (participation_id,) in rows}
