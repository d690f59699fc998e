"""
Shared fixtures: a fresh in-memory SQLite store per test plus helpers
creating users, competitions, branches and participations.
"""
import pytest

from core.config import Settings
from db import Store
from main import App
from models.competition import Competition, CompetitionStatus
from models.round_participation import QualifiedBy
from api.crud.user_crud import create_user
from api.crud.city_crud import create_city, add_branch
from api.crud.participation_crud import create_participation
from api.crud.round_crud import create_round
from api.crud.round_participation_crud import add_entry
from api.crud.score_crud import create_score


@pytest.fixture(scope="function")
def settings():
    return Settings()


@pytest.fixture(scope="function")
def store(settings):
    """Create a fresh DB for each test (SQLite in-memory)."""
    store = Store(database_url="sqlite://", config=settings).init()
    store.create_all()
    try:
        yield store
    finally:
        store.drop_all()
        store.close()


@pytest.fixture(scope="function")
def engine(store):
    return App(store)


class Factory:
    """Direct store writes for test setup, bypassing service rules"""

    def __init__(self, store: Store):
        self.store = store
        self._users = 0

    def user(self, full_name: str = None) -> int:
        self._users += 1
        n = self._users
        with self.store.transaction() as db:
            return create_user(
                db,
                mi_id=f"MI{n:04d}",
                full_name=full_name or f"User {n:03d}",
                email=f"user{n}@example.com",
            ).id

    def competition(self, status: CompetitionStatus = CompetitionStatus.ACTIVE,
                    registration_open: bool = True, name: str = "City Cup") -> int:
        with self.store.transaction() as db:
            competition = Competition(name=name, description="", status=status, registration_open=registration_open)
            db.add(competition)
            db.flush()
            return competition.id

    def city(self, name: str) -> int:
        with self.store.transaction() as db:
            return create_city(db, name).id

    def branch(self, competition_id: int, city_name: str = "Kyiv", event_date=None,
               registration_open: bool = True) -> int:
        city_id = self.city(city_name)
        with self.store.transaction() as db:
            branch = add_branch(db, competition_id, city_id, event_date)
            branch.registration_open = registration_open
        return city_id

    def participation(self, user_id: int, competition_id: int, city_id: int) -> int:
        with self.store.transaction() as db:
            return create_participation(db, user_id, competition_id, city_id).id

    def participants(self, competition_id: int, city_id: int, count: int) -> list:
        """count new users registered in the branch, returns participation ids"""
        return [self.participation(self.user(), competition_id, city_id) for _ in range(count)]

    def round(self, competition_id: int, city_id: int, round_number: int, is_finale: bool = False) -> int:
        with self.store.transaction() as db:
            return create_round(db, competition_id, city_id, round_number, f"Round {round_number}",
                                is_finale=is_finale).id

    def entry(self, round_id: int, participation_id: int) -> int:
        with self.store.transaction() as db:
            return add_entry(db, round_id, participation_id, QualifiedBy.AUTOMATIC).id

    def score(self, round_participation_id: int, value: float) -> int:
        with self.store.transaction() as db:
            return create_score(db, round_participation_id, value).id

    def scored_round(self, competition_id: int, city_id: int, round_number: int, scores: list,
                     is_finale: bool = False) -> tuple:
        """Round with one new participant per score; returns (round_id, [round_participation_id, ...])"""
        round_id = self.round(competition_id, city_id, round_number, is_finale)
        entry_ids = []
        for value in scores:
            participation_id = self.participation(self.user(), competition_id, city_id)
            entry_id = self.entry(round_id, participation_id)
            if value is not None:
                self.score(entry_id, value)
            entry_ids.append(entry_id)
        return round_id, entry_ids


@pytest.fixture(scope="function")
def factory(store):
    return Factory(store)
