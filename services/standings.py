"""
Read models over rounds and results. Nothing here writes.
"""
from typing import List, Optional
from db import Store
from models.competition import CompetitionStatus
from models.city import CityStatus
from models.round import RoundStatus
from models.result import ResultStatus
from schemas.round import RoundDetail, RoundEntryRead, RoundSummary, EligibleParticipant
from schemas.leaderboard import (
    FinaleWinner, UserRoundPosition, CityLeaderboardEntry, OverallStats, TopPerformer, LeaderboardCompetition,
    OpenCompetition, OpenCompetitionCity
)
from api.crud.round_crud import get_competition_rounds
from api.crud.city_crud import get_branches
from api.crud.participation_crud import get_competition_participations
from api.crud.round_participation_crud import get_round_entries, get_round_participation_ids, get_past_winner_ids
from api.crud.competition_crud import count_participations, search_competitions, participation_counts_by_competition
from api.crud.leaderboard_crud import (
    get_finale_winner_rows, get_user_round_rows, get_city_result_rows, overall_counts, get_top_performers,
    get_leaderboard_competitions, round_counts_by_competition
)
from api.crud.result_crud import get_results
from core.validators import (
    validate_round_exists, validate_competition_exists, validate_city_exists, validate_user_exists,
    validate_positive_count
)
from services.round_engine import round_summary


def _entry_read(entry) -> RoundEntryRead:
    user = entry.participation.user
    score = entry.score
    return RoundEntryRead(
        round_participation_id=entry.id,
        participation_id=entry.participation_id,
        user_id=user.id,
        full_name=user.full_name,
        email=user.email,
        mi_id=user.mi_id,
        qualified_by=entry.qualified_by,
        score=score.score if score else None,
        rank_in_round=score.rank_in_round if score else None,
        is_winner=score.is_winner if score else False,
        winner_position=score.winner_position if score else None,
        notes=score.notes if score else None,
    )


def _by_score(entries: List[RoundEntryRead]) -> List[RoundEntryRead]:
    # Score descending, unscored last, then name
    return sorted(entries, key=lambda e: (e.score is None, -(e.score or 0), e.full_name))


class StandingsService:

    def __init__(self, store: Store):
        self.store = store

    def round_details(self, round_id: int) -> RoundDetail:
        with self.store.transaction() as db:
            db_round = validate_round_exists(db, round_id)
            participants = _by_score([_entry_read(e) for e in get_round_entries(db, round_id)])
            summary = round_summary(db, db_round)
            return RoundDetail(
                **summary.dict(),
                competition_name=db_round.competition.name,
                participants=participants,
            )

    def rounds_by_competition(self, competition_id: int) -> List[RoundSummary]:
        with self.store.transaction() as db:
            validate_competition_exists(db, competition_id)
            summaries = [round_summary(db, r) for r in get_competition_rounds(db, competition_id)]
            return sorted(summaries, key=lambda s: (s.city_name, s.round_number))

    def round_leaderboard(self, round_id: int) -> List[RoundEntryRead]:
        with self.store.transaction() as db:
            validate_round_exists(db, round_id)
            entries = [_entry_read(e) for e in get_round_entries(db, round_id)]
            return sorted(entries, key=lambda e: (e.score is None, -(e.score or 0), e.round_participation_id))

    def eligible_participants(self, round_id: int) -> List[EligibleParticipant]:
        """
        Candidates for manual addition.

        Opening round: the city's registrations not yet in it, by name.
        Later rounds: every participant of the competition not yet in the
        round, past round winners first.
        """
        with self.store.transaction() as db:
            db_round = validate_round_exists(db, round_id)
            in_round = get_round_participation_ids(db, round_id)

            if db_round.round_number == 1:
                candidates = get_competition_participations(db, db_round.competition_id, db_round.city_id)
                past_winners = set()
            else:
                candidates = get_competition_participations(db, db_round.competition_id)
                past_winners = get_past_winner_ids(db, db_round.competition_id)

            eligible = [
                EligibleParticipant(
                    participation_id=p.id,
                    user_id=p.user_id,
                    full_name=p.user.full_name,
                    email=p.user.email,
                    mi_id=p.user.mi_id,
                    city_id=p.city_id,
                    is_past_winner=p.id in past_winners,
                )
                for p in candidates
                if p.id not in in_round
            ]
            return sorted(eligible, key=lambda e: (not e.is_past_winner, e.full_name))

    def competition_dashboard(self, competition_id: int) -> dict:
        with self.store.transaction() as db:
            competition = validate_competition_exists(db, competition_id)
            rounds = get_competition_rounds(db, competition_id)
            branches = get_branches(db, competition_id)

            rounds_by_city = {}
            for branch in branches:
                rounds_by_city[branch.city.name] = []
            for r in rounds:
                rounds_by_city.setdefault(r.city.name, []).append(round_summary(db, r))

            winners = get_results(db, competition_id=competition_id)
            all_winners = [
                {
                    "participation_id": result.participation_id,
                    "full_name": result.participation.user.full_name,
                    "city_name": result.participation.city.name,
                    "result_status": result.result_status.value,
                    "position": result.position,
                }
                for result in winners
                if result.result_status in (ResultStatus.WINNER, ResultStatus.FINALIST)
            ]

            cities_completed = len({
                r.city_id for r in rounds if r.is_finale and r.status == RoundStatus.COMPLETED
            })
            return {
                "competition": {
                    "id": competition.id,
                    "name": competition.name,
                    "status": competition.status.value,
                    "registration_open": competition.registration_open,
                },
                "rounds_by_city": rounds_by_city,
                "all_winners": all_winners,
                "stats": {
                    "total_participants": count_participations(db, competition_id),
                    "total_cities": len(branches),
                    "total_rounds": len(rounds),
                    "total_winners": len(all_winners),
                    "cities_completed": cities_completed,
                },
            }

    # Public leaderboards
    def competition_winners(self, competition_id: int) -> List[FinaleWinner]:
        """Finale winners of every city, by city then position"""
        with self.store.transaction() as db:
            validate_competition_exists(db, competition_id)
            return [
                FinaleWinner(
                    user_id=user.id,
                    mi_id=user.mi_id,
                    full_name=user.full_name,
                    city_id=city.id,
                    city_name=city.name,
                    round_id=db_round.id,
                    round_name=db_round.name,
                    score=score.score,
                    winner_position=score.winner_position,
                )
                for score, db_round, _participation, user, city, _competition
                in get_finale_winner_rows(db, competition_id=competition_id)
            ]

    def user_round_positions(self, user_id: int, competition_id: int) -> List[UserRoundPosition]:
        with self.store.transaction() as db:
            validate_user_exists(db, user_id)
            validate_competition_exists(db, competition_id)
            return [
                UserRoundPosition(
                    round_id=db_round.id,
                    round_name=db_round.name,
                    round_number=db_round.round_number,
                    is_finale=db_round.is_finale,
                    round_status=db_round.status,
                    city_name=city.name,
                    score=score.score if score else None,
                    rank_in_round=score.rank_in_round if score else None,
                    is_winner=score.is_winner if score else False,
                    winner_position=score.winner_position if score else None,
                )
                for db_round, score, city in get_user_round_rows(db, user_id, competition_id)
            ]

    def city_leaderboard(self, city_id: int) -> List[CityLeaderboardEntry]:
        """
        Everything the city has won across competitions.

        Finale winners come first, then the city's stored Results
        (manually assigned or materialized from a finale).
        """
        with self.store.transaction() as db:
            validate_city_exists(db, city_id)
            finale_winners = [
                CityLeaderboardEntry(
                    user_id=user.id,
                    mi_id=user.mi_id,
                    full_name=user.full_name,
                    competition_id=competition.id,
                    competition_name=competition.name,
                    result_status=ResultStatus.WINNER,
                    position=score.winner_position,
                    round_name=db_round.name,
                    score=score.score,
                )
                for score, db_round, _participation, user, _city, competition
                in get_finale_winner_rows(db, city_id=city_id)
            ]
            results = [
                CityLeaderboardEntry(
                    user_id=user.id,
                    mi_id=user.mi_id,
                    full_name=user.full_name,
                    competition_id=competition.id,
                    competition_name=competition.name,
                    result_status=result.result_status,
                    position=result.position,
                )
                for result, _participation, user, competition in get_city_result_rows(db, city_id)
            ]
            return finale_winners + results

    def overall_stats(self) -> OverallStats:
        with self.store.transaction() as db:
            return OverallStats(**overall_counts(db))

    def top_performers(self, limit: int = 10) -> List[TopPerformer]:
        validate_positive_count(limit, "limit")
        with self.store.transaction() as db:
            return [
                TopPerformer(
                    user_id=row.id,
                    mi_id=row.mi_id,
                    full_name=row.full_name,
                    total_participations=row.total_participations,
                    wins=row.wins or 0,
                    first_places=row.first_places or 0,
                )
                for row in get_top_performers(db, limit)
            ]

    def leaderboard_competitions(self) -> List[LeaderboardCompetition]:
        """ACTIVE and COMPLETED competitions with round and participant counts"""
        with self.store.transaction() as db:
            rounds = round_counts_by_competition(db)
            participants = participation_counts_by_competition(db)
            return [
                LeaderboardCompetition(
                    id=competition.id,
                    name=competition.name,
                    status=competition.status,
                    round_count=rounds.get(competition.id, (0, 0))[0],
                    completed_finales=rounds.get(competition.id, (0, 0))[1],
                    participant_count=participants.get(competition.id, 0),
                )
                for competition in get_leaderboard_competitions(db)
            ]

    def open_competitions(self, search: str = None, status: Optional[CompetitionStatus] = None,
                          registration_open: bool = None, city_id: int = None) -> List[OpenCompetition]:
        """
        Public competition listing with the branches in active cities.

        With city_id set, only that branch is listed and competitions
        without it are left out.
        """
        if status is not None:
            status = CompetitionStatus(status)

        with self.store.transaction() as db:
            listing = []
            for competition in search_competitions(db, search, status, registration_open):
                cities = [
                    OpenCompetitionCity(
                        competition_city_id=branch.id,
                        city_id=branch.city_id,
                        city_name=branch.city.name,
                        event_date=branch.event_date,
                        registration_open=branch.registration_open,
                        participant_count=count_participations(db, competition.id, branch.city_id),
                    )
                    for branch in get_branches(db, competition.id)
                    if branch.city.status == CityStatus.ACTIVE
                    and (city_id is None or branch.city_id == city_id)
                ]
                if city_id is not None and not cities:
                    continue

                listing.append(OpenCompetition(
                    id=competition.id,
                    name=competition.name,
                    description=competition.description,
                    status=competition.status,
                    registration_open=competition.registration_open,
                    created_at=competition.created_at,
                    cities=cities,
                    total_participants=sum(c.participant_count for c in cities),
                ))
            return listing
