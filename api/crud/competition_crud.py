from sqlalchemy.orm import Session
from sqlalchemy import func
from models.competition import Competition, CompetitionStatus
from models.participation import Participation
from schemas.competition import CompetitionCreate


def create_competition(db: Session, competition: CompetitionCreate):
    db_competition = Competition(
        **competition.dict(),
        status=CompetitionStatus.DRAFT,
        registration_open=False,
    )
    db.add(db_competition)
    db.flush()
    return db_competition


def get_competition(db: Session, competition_id: int):
    return db.query(Competition).filter(Competition.id == competition_id).first()


def get_competitions(db: Session, status: CompetitionStatus = None):
    query = db.query(Competition)
    if status is not None:
        query = query.filter(Competition.status == status)
    return query.order_by(Competition.created_at.desc(), Competition.id.desc()).all()


def search_competitions(db: Session, search: str = None, status: CompetitionStatus = None,
                        registration_open: bool = None):
    """Publicly visible competitions, open registration first, newest first"""
    query = db.query(Competition).filter(
        Competition.status.in_([CompetitionStatus.DRAFT, CompetitionStatus.ACTIVE, CompetitionStatus.COMPLETED])
    )
    if search:
        query = query.filter(Competition.name.ilike(f"%{search.strip()}%"))
    if status is not None:
        query = query.filter(Competition.status == status)
    if registration_open is not None:
        query = query.filter(Competition.registration_open.is_(registration_open))
    return query.order_by(
        Competition.registration_open.desc(), Competition.created_at.desc(), Competition.id.desc()
    ).all()


def update_competition(db: Session, db_competition: Competition, update_data: dict):
    for field, value in update_data.items():
        setattr(db_competition, field, value)
    db.flush()
    return db_competition


def delete_competition(db: Session, db_competition: Competition):
    db.delete(db_competition)
    db.flush()


def count_participations(db: Session, competition_id: int, city_id: int = None) -> int:
    query = db.query(func.count(Participation.id)).filter(Participation.competition_id == competition_id)
    if city_id is not None:
        query = query.filter(Participation.city_id == city_id)
    return query.scalar() or 0


def participation_counts_by_competition(db: Session) -> dict:
    """competition_id -> number of participations"""
    rows = db.query(
        Participation.competition_id, func.count(Participation.id)
    ).group_by(Participation.competition_id).all()
    return {competition_id: count for competition_id, count in rows}
