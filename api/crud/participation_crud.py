from sqlalchemy.orm import Session, joinedload
from typing import List
from models.participation import Participation, ParticipationSource
from models.user import User


def create_participation(db: Session, user_id: int, competition_id: int, city_id: int,
                         source: ParticipationSource = ParticipationSource.USER_SELF):
    db_participation = Participation(
        user_id=user_id,
        competition_id=competition_id,
        city_id=city_id,
        source=source
    )
    db.add(db_participation)
    db.flush()
    return db_participation


def get_participation(db: Session, participation_id: int):
    return db.query(Participation).filter(Participation.id == participation_id).first()


def get_participation_by_ids(db: Session, user_id: int, competition_id: int, city_id: int):
    return db.query(Participation).filter(
        Participation.user_id == user_id,
        Participation.competition_id == competition_id,
        Participation.city_id == city_id
    ).first()


def get_competition_participations(db: Session, competition_id: int, city_id: int = None) -> List[Participation]:
    """Participations with user, city and result loaded, ordered by name"""
    query = db.query(Participation).options(
        joinedload(Participation.user),
        joinedload(Participation.city),
        joinedload(Participation.result)
    ).join(User, User.id == Participation.user_id).filter(
        Participation.competition_id == competition_id
    )
    if city_id is not None:
        query = query.filter(Participation.city_id == city_id)
    return query.order_by(User.full_name, Participation.id).all()


def get_user_participations(db: Session, user_id: int) -> List[Participation]:
    return db.query(Participation).options(
        joinedload(Participation.competition),
        joinedload(Participation.city)
    ).filter(
        Participation.user_id == user_id
    ).order_by(Participation.registered_at.desc(), Participation.id.desc()).all()
