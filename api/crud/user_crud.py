from sqlalchemy.orm import Session
from models.user import User


def create_user(db: Session, mi_id: str, full_name: str, email: str):
    db_user = User(mi_id=mi_id, full_name=full_name, email=email)
    db.add(db_user)
    db.flush()
    return db_user


def get_user(db: Session, user_id: int):
    return db.query(User).filter(User.id == user_id).first()
