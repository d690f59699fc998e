from sqlalchemy.orm import Session
from sqlalchemy import select
from typing import List
from models.round_participation import RoundParticipation
from models.round_score import RoundScore


def get_score(db: Session, round_participation_id: int):
    return db.query(RoundScore).filter(RoundScore.round_participation_id == round_participation_id).first()


def create_score(db: Session, round_participation_id: int, score: float = None,
                 notes: str = None, admin_id: int = None):
    db_score = RoundScore(
        round_participation_id=round_participation_id,
        score=score,
        notes=notes,
        scored_by_admin_id=admin_id
    )
    db.add(db_score)
    db.flush()
    return db_score


def upsert_score(db: Session, round_participation_id: int, score: float = None,
                 notes: str = None, admin_id: int = None):
    """Insert or overwrite the score of one round membership"""
    db_score = get_score(db, round_participation_id)
    if not db_score:
        return create_score(db, round_participation_id, score, notes, admin_id)

    db_score.score = score
    db_score.notes = notes
    db_score.scored_by_admin_id = admin_id
    db.flush()
    return db_score


def _round_entry_ids(round_id: int):
    return select(RoundParticipation.id).where(RoundParticipation.round_id == round_id)


def delete_round_scores(db: Session, round_id: int) -> int:
    deleted = db.query(RoundScore).filter(
        RoundScore.round_participation_id.in_(_round_entry_ids(round_id))
    ).delete(synchronize_session=False)
    db.flush()
    return deleted or 0


def recalculate_ranks(db: Session, round_id: int) -> List[RoundScore]:
    """
    Sequential ranks 1..N over non-null scores, highest first.

    Equal scores are not collapsed: [90, 90, 70] ranks as [1, 2, 3], the
    earlier round membership taking the better rank. Unscored rows lose
    their rank.
    """
    rows = db.query(RoundScore).join(
        RoundParticipation, RoundParticipation.id == RoundScore.round_participation_id
    ).filter(
        RoundParticipation.round_id == round_id
    ).order_by(
        RoundScore.score.is_(None), RoundScore.score.desc(), RoundParticipation.id.asc()
    ).all()

    rank = 0
    for row in rows:
        if row.score is None:
            row.rank_in_round = None
            continue
        rank += 1
        row.rank_in_round = rank

    db.flush()
    return rows


def reset_winner_flags(db: Session, round_id: int) -> int:
    reset = db.query(RoundScore).filter(
        RoundScore.round_participation_id.in_(_round_entry_ids(round_id))
    ).update({RoundScore.is_winner: False, RoundScore.winner_position: None}, synchronize_session=False)
    db.flush()
    return reset or 0


def get_round_winners(db: Session, round_id: int) -> List[RoundParticipation]:
    """Flagged winners of a round ordered by position"""
    return db.query(RoundParticipation).join(
        RoundScore, RoundScore.round_participation_id == RoundParticipation.id
    ).filter(
        RoundParticipation.round_id == round_id,
        RoundScore.is_winner.is_(True)
    ).order_by(RoundScore.winner_position).all()
