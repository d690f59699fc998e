from sqlalchemy.orm import Session
from sqlalchemy import func, and_, case
from typing import List
from models.competition import Competition, CompetitionStatus
from models.city import City, CityStatus
from models.participation import Participation
from models.round import Round, RoundStatus
from models.round_participation import RoundParticipation
from models.round_score import RoundScore
from models.result import Result, ResultStatus
from models.user import User, UserStatus


def get_finale_winner_rows(db: Session, competition_id: int = None, city_id: int = None) -> List[tuple]:
    """
    (RoundScore, Round, Participation, User, City, Competition) for every
    winner flagged in a finale. City is the participant's registration city.
    """
    query = db.query(RoundScore, Round, Participation, User, City, Competition).join(
        RoundParticipation, RoundParticipation.id == RoundScore.round_participation_id
    ).join(
        Round, Round.id == RoundParticipation.round_id
    ).join(
        Participation, Participation.id == RoundParticipation.participation_id
    ).join(
        User, User.id == Participation.user_id
    ).join(
        City, City.id == Participation.city_id
    ).join(
        Competition, Competition.id == Participation.competition_id
    ).filter(
        and_(
            RoundScore.is_winner.is_(True),
            Round.is_finale.is_(True)
        )
    )
    if competition_id is not None:
        query = query.filter(Round.competition_id == competition_id)
    if city_id is not None:
        query = query.filter(Participation.city_id == city_id)

    return query.order_by(Competition.name, City.name, RoundScore.winner_position, RoundScore.id).all()


def get_user_round_rows(db: Session, user_id: int, competition_id: int) -> List[tuple]:
    """(Round, RoundScore or None, City of the round) for each round the user's participation is in"""
    return db.query(Round, RoundScore, City).select_from(Participation).join(
        RoundParticipation, RoundParticipation.participation_id == Participation.id
    ).join(
        Round, Round.id == RoundParticipation.round_id
    ).join(
        City, City.id == Round.city_id
    ).outerjoin(
        RoundScore, RoundScore.round_participation_id == RoundParticipation.id
    ).filter(
        and_(
            Participation.user_id == user_id,
            Participation.competition_id == competition_id
        )
    ).order_by(City.name, Round.round_number, Round.id).all()


def get_city_result_rows(db: Session, city_id: int) -> List[tuple]:
    """(Result, Participation, User, Competition) for the city's stored results"""
    return db.query(Result, Participation, User, Competition).join(
        Participation, Participation.id == Result.participation_id
    ).join(
        User, User.id == Participation.user_id
    ).join(
        Competition, Competition.id == Participation.competition_id
    ).filter(
        Participation.city_id == city_id
    ).order_by(Competition.name, Result.position.is_(None), Result.position, User.full_name).all()


def overall_counts(db: Session) -> dict:
    return {
        "active_competitions": db.query(func.count(Competition.id)).filter(
            Competition.status == CompetitionStatus.ACTIVE
        ).scalar() or 0,
        "total_participations": db.query(func.count(Participation.id)).scalar() or 0,
        "total_winners": db.query(func.count(Result.id)).filter(
            Result.result_status == ResultStatus.WINNER
        ).scalar() or 0,
        "active_cities": db.query(func.count(City.id)).filter(
            City.status == CityStatus.ACTIVE
        ).scalar() or 0,
    }


def get_top_performers(db: Session, limit: int) -> List[tuple]:
    """Active users with at least one WINNER result, most wins first, then most first places"""
    wins = func.sum(case((Result.result_status == ResultStatus.WINNER, 1), else_=0))
    first_places = func.sum(case((Result.position == 1, 1), else_=0))

    return db.query(
        User.id,
        User.mi_id,
        User.full_name,
        func.count(func.distinct(Participation.id)).label("total_participations"),
        wins.label("wins"),
        first_places.label("first_places")
    ).join(
        Participation, Participation.user_id == User.id
    ).outerjoin(
        Result, Result.participation_id == Participation.id
    ).filter(
        User.status == UserStatus.ACTIVE
    ).group_by(
        User.id, User.mi_id, User.full_name
    ).having(
        wins > 0
    ).order_by(
        wins.desc(), first_places.desc(), User.id
    ).limit(limit).all()


def get_leaderboard_competitions(db: Session) -> List[Competition]:
    """Competitions with something to show: ACTIVE first, then COMPLETED, newest first"""
    return db.query(Competition).filter(
        Competition.status.in_([CompetitionStatus.ACTIVE, CompetitionStatus.COMPLETED])
    ).order_by(Competition.status, Competition.created_at.desc(), Competition.id.desc()).all()


def round_counts_by_competition(db: Session) -> dict:
    """competition_id -> (round count, completed finale count)"""
    completed_finale = case(
        (and_(Round.is_finale.is_(True), Round.status == RoundStatus.COMPLETED), 1), else_=0
    )
    rows = db.query(
        Round.competition_id, func.count(Round.id), func.sum(completed_finale)
    ).group_by(Round.competition_id).all()
    return {competition_id: (rounds, finales or 0) for competition_id, rounds, finales in rows}
