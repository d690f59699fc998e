from sqlalchemy.orm import Session, joinedload
from sqlalchemy import func
from typing import List
from models.city import City, CityStatus, CompetitionCity
from models.round import Round


def create_city(db: Session, name: str):
    db_city = City(name=name.strip(), status=CityStatus.ACTIVE)
    db.add(db_city)
    db.flush()
    return db_city


def get_city(db: Session, city_id: int):
    return db.query(City).filter(City.id == city_id).first()


def get_city_by_name(db: Session, name: str):
    """Case-insensitive lookup"""
    return db.query(City).filter(func.lower(City.name) == name.strip().lower()).first()


def get_active_cities(db: Session) -> List[City]:
    return db.query(City).filter(City.status == CityStatus.ACTIVE).order_by(City.name).all()


# Branches (competition <-> city)
def add_branch(db: Session, competition_id: int, city_id: int, event_date=None):
    branch = CompetitionCity(
        competition_id=competition_id,
        city_id=city_id,
        event_date=event_date,
        registration_open=True,
    )
    db.add(branch)
    db.flush()
    return branch


def get_branch(db: Session, competition_id: int, city_id: int):
    return db.query(CompetitionCity).filter(
        CompetitionCity.competition_id == competition_id,
        CompetitionCity.city_id == city_id
    ).first()


def get_branches(db: Session, competition_id: int) -> List[CompetitionCity]:
    return db.query(CompetitionCity).options(
        joinedload(CompetitionCity.city)
    ).join(City, City.id == CompetitionCity.city_id).filter(
        CompetitionCity.competition_id == competition_id
    ).order_by(City.name).all()


def count_branches(db: Session, competition_id: int) -> int:
    return db.query(func.count(CompetitionCity.id)).filter(
        CompetitionCity.competition_id == competition_id
    ).scalar() or 0


def count_branch_rounds(db: Session, competition_id: int, city_id: int) -> int:
    return db.query(func.count(Round.id)).filter(
        Round.competition_id == competition_id,
        Round.city_id == city_id
    ).scalar() or 0


def delete_branch(db: Session, branch: CompetitionCity):
    db.delete(branch)
    db.flush()
