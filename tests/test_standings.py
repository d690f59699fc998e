"""
Tests for round details, leaderboards, eligibility and the dashboard
"""
import pytest

from models.competition import CompetitionStatus
from models.city import City, CityStatus
from models.result import ResultStatus
from models.user import User, UserStatus
from core.exceptions import RoundNotFound, CompetitionNotFound, UserNotFound, CityNotFound, InvalidOperation


def decide(engine, round_id, entry_ids):
    """Select winners in list order: first entry gets position 1"""
    engine.winners.select_winners(round_id, [
        {"round_participation_id": entry_id, "position": position}
        for position, entry_id in enumerate(entry_ids, start=1)
    ])


def deactivate_city(store, city_id):
    with store.transaction() as db:
        db.get(City, city_id).status = CityStatus.INACTIVE


def deactivate_user(store, user_id):
    with store.transaction() as db:
        db.get(User, user_id).status = UserStatus.INACTIVE


class TestRoundViews:

    def test_round_details(self, engine, factory):
        competition_id = factory.competition(name="Summer Cup")
        city_id = factory.branch(competition_id, "Dnipro")
        round_id, _ = factory.scored_round(competition_id, city_id, 1, [20, None, 80])

        details = engine.standings.round_details(round_id)

        assert details.competition_name == "Summer Cup"
        assert details.city_name == "Dnipro"
        assert details.participant_count == 3
        assert details.scored_count == 2
        assert [p.score for p in details.participants] == [80, 20, None]

    def test_leaderboard_orders_scores(self, engine, factory):
        competition_id = factory.competition()
        city_id = factory.branch(competition_id)
        round_id, entry_ids = factory.scored_round(competition_id, city_id, 1, [55, 75, None, 65])
        engine.rounds.recalculate_ranks(round_id)

        board = engine.standings.round_leaderboard(round_id)
        assert [e.round_participation_id for e in board] == [entry_ids[1], entry_ids[3], entry_ids[0], entry_ids[2]]
        assert [e.rank_in_round for e in board] == [1, 2, 3, None]

    def test_rounds_by_competition(self, engine, factory):
        competition_id = factory.competition()
        lviv = factory.branch(competition_id, "Lviv")
        kyiv = factory.branch(competition_id, "Kyiv")
        factory.scored_round(competition_id, lviv, 1, [10])
        factory.scored_round(competition_id, kyiv, 2, [10, 20])
        factory.scored_round(competition_id, kyiv, 1, [])

        rounds = engine.standings.rounds_by_competition(competition_id)
        assert [(r.city_name, r.round_number) for r in rounds] == [("Kyiv", 1), ("Kyiv", 2), ("Lviv", 1)]
        assert rounds[1].participant_count == 2

    def test_missing_round(self, engine):
        with pytest.raises(RoundNotFound):
            engine.standings.round_details(999)


class TestEligibleParticipants:

    def test_first_round_lists_city_registrations_not_in_round(self, engine, factory):
        competition_id = factory.competition()
        kyiv = factory.branch(competition_id, "Kyiv")
        lviv = factory.branch(competition_id, "Lviv")
        round_id = factory.round(competition_id, kyiv, 1)
        enrolled = factory.participation(factory.user("Enrolled"), competition_id, kyiv)
        factory.entry(round_id, enrolled)
        factory.participation(factory.user("Yaroslav"), competition_id, kyiv)
        factory.participation(factory.user("Bohdana"), competition_id, kyiv)
        factory.participation(factory.user("Other City"), competition_id, lviv)

        eligible = engine.standings.eligible_participants(round_id)
        assert [e.full_name for e in eligible] == ["Bohdana", "Yaroslav"]

    def test_later_rounds_prefer_past_winners(self, engine, factory):
        competition_id = factory.competition()
        kyiv = factory.branch(competition_id, "Kyiv")
        lviv = factory.branch(competition_id, "Lviv")

        finale_id = factory.round(competition_id, lviv, 1, is_finale=True)
        champion = factory.participation(factory.user("Zenon"), competition_id, lviv)
        entry_id = factory.entry(finale_id, champion)
        factory.score(entry_id, 99)
        engine.winners.select_winners(finale_id, [{"round_participation_id": entry_id, "position": 1}])

        factory.participation(factory.user("Anton"), competition_id, kyiv)
        round_2 = factory.round(competition_id, kyiv, 2)

        eligible = engine.standings.eligible_participants(round_2)
        assert [(e.full_name, e.is_past_winner) for e in eligible] == [("Zenon", True), ("Anton", False)]


class TestDashboard:

    def test_dashboard(self, engine, factory):
        competition_id = factory.competition(status=CompetitionStatus.ACTIVE)
        kyiv = factory.branch(competition_id, "Kyiv")
        factory.branch(competition_id, "Lviv")
        factory.scored_round(competition_id, kyiv, 1, [40, 30, 20])
        finale_id, entry_ids = factory.scored_round(competition_id, kyiv, 2, [50, 45], is_finale=True)
        engine.winners.select_winners(finale_id, [
            {"round_participation_id": entry_ids[0], "position": 1},
            {"round_participation_id": entry_ids[1], "position": 2},
        ])

        dashboard = engine.standings.competition_dashboard(competition_id)

        assert dashboard["competition"]["status"] == "ACTIVE"
        assert set(dashboard["rounds_by_city"]) == {"Kyiv", "Lviv"}
        assert len(dashboard["rounds_by_city"]["Kyiv"]) == 2
        assert dashboard["rounds_by_city"]["Lviv"] == []
        assert [w["result_status"] for w in dashboard["all_winners"]] == ["WINNER", "FINALIST"]
        assert dashboard["stats"] == {
            "total_participants": 5,
            "total_cities": 2,
            "total_rounds": 2,
            "total_winners": 2,
            "cities_completed": 1,
        }


class TestPublicLeaderboards:

    def test_competition_winners_by_city_then_position(self, engine, factory):
        competition_id = factory.competition()
        lviv = factory.branch(competition_id, "Lviv")
        kyiv = factory.branch(competition_id, "Kyiv")
        lviv_finale, lviv_entries = factory.scored_round(competition_id, lviv, 1, [90, 80], is_finale=True)
        kyiv_finale, kyiv_entries = factory.scored_round(competition_id, kyiv, 1, [70, 60], is_finale=True)
        decide(engine, lviv_finale, lviv_entries)
        decide(engine, kyiv_finale, [kyiv_entries[1], kyiv_entries[0]])

        winners = engine.standings.competition_winners(competition_id)

        assert [(w.city_name, w.winner_position, w.score) for w in winners] == [
            ("Kyiv", 1, 60), ("Kyiv", 2, 70), ("Lviv", 1, 90), ("Lviv", 2, 80)
        ]
        assert winners[0].round_name == "Round 1"

    def test_competition_winners_skip_other_competitions(self, engine, factory):
        competition_id = factory.competition()
        other_id = factory.competition(name="Other Cup")
        city_id = factory.branch(other_id, "Odesa")
        finale_id, entry_ids = factory.scored_round(other_id, city_id, 1, [50], is_finale=True)
        decide(engine, finale_id, entry_ids)

        assert engine.standings.competition_winners(competition_id) == []
        with pytest.raises(CompetitionNotFound):
            engine.standings.competition_winners(999)

    def test_user_round_positions(self, engine, factory):
        competition_id = factory.competition()
        city_id = factory.branch(competition_id, "Kyiv")
        user_id = factory.user("Olena")
        participation_id = factory.participation(user_id, competition_id, city_id)

        first_round = factory.round(competition_id, city_id, 1)
        factory.score(factory.entry(first_round, participation_id), 50)
        rival = factory.participation(factory.user(), competition_id, city_id)
        factory.score(factory.entry(first_round, rival), 70)
        engine.rounds.recalculate_ranks(first_round)
        finale_id = factory.round(competition_id, city_id, 2, is_finale=True)
        finale_entry = factory.entry(finale_id, participation_id)

        # Rounds of another competition stay out
        other_id = factory.competition(name="Other Cup")
        other_city = factory.branch(other_id, "Odesa")
        factory.entry(factory.round(other_id, other_city, 1), factory.participation(user_id, other_id, other_city))

        positions = engine.standings.user_round_positions(user_id, competition_id)
        assert [(p.round_number, p.score, p.rank_in_round, p.is_winner) for p in positions] == [
            (1, 50, 2, False), (2, None, None, False)
        ]

        decide(engine, finale_id, [finale_entry])
        finale = engine.standings.user_round_positions(user_id, competition_id)[1]
        assert finale.is_finale is True
        assert (finale.is_winner, finale.winner_position) == (True, 1)

    def test_user_round_positions_unknown_user(self, engine, factory):
        competition_id = factory.competition()
        with pytest.raises(UserNotFound):
            engine.standings.user_round_positions(999, competition_id)

    def test_city_leaderboard(self, engine, factory):
        competition_id = factory.competition(name="Spring Cup")
        kyiv = factory.branch(competition_id, "Kyiv")
        lviv = factory.branch(competition_id, "Lviv")
        finale_id, entry_ids = factory.scored_round(competition_id, kyiv, 1, [88, 77], is_finale=True)
        decide(engine, finale_id, entry_ids)
        other_finale, other_entries = factory.scored_round(competition_id, lviv, 1, [99], is_finale=True)
        decide(engine, other_finale, other_entries)

        board = engine.standings.city_leaderboard(kyiv)

        assert [(e.result_status, e.position, e.round_name, e.score) for e in board] == [
            (ResultStatus.WINNER, 1, "Round 1", 88),
            (ResultStatus.WINNER, 2, "Round 1", 77),
            (ResultStatus.WINNER, 1, None, None),
            (ResultStatus.FINALIST, 2, None, None),
        ]
        assert board[0].full_name == board[2].full_name
        assert {e.competition_name for e in board} == {"Spring Cup"}

        with pytest.raises(CityNotFound):
            engine.standings.city_leaderboard(999)

    def test_overall_stats(self, engine, factory, store):
        competition_id = factory.competition(status=CompetitionStatus.ACTIVE)
        factory.competition(status=CompetitionStatus.DRAFT, name="Draft Cup")
        kyiv = factory.branch(competition_id, "Kyiv")
        factory.branch(competition_id, "Lviv")
        deactivate_city(store, factory.city("Poltava"))
        finale_id, entry_ids = factory.scored_round(competition_id, kyiv, 1, [90, 80], is_finale=True)
        decide(engine, finale_id, entry_ids)

        stats = engine.standings.overall_stats()
        assert stats.dict() == {
            "active_competitions": 1,
            "total_participations": 2,
            "total_winners": 1,
            "active_cities": 2,
        }

    def test_top_performers(self, engine, factory, store):
        cup_a = factory.competition(name="Cup A")
        cup_b = factory.competition(name="Cup B")
        city_a = factory.branch(cup_a, "Kyiv")
        city_b = factory.branch(cup_b, "Lviv")

        def result(user_id, competition_id, city_id, result_status, position):
            participation_id = factory.participation(user_id, competition_id, city_id)
            engine.results.assign_result(participation_id, result_status, position)

        iryna, marko, taras, nina, ghost = (
            factory.user(name) for name in ("Iryna", "Marko", "Taras", "Nina", "Ghost")
        )
        result(iryna, cup_a, city_a, ResultStatus.WINNER, 2)
        result(iryna, cup_b, city_b, ResultStatus.WINNER, 2)
        result(marko, cup_a, city_a, ResultStatus.WINNER, 1)
        result(taras, cup_a, city_a, ResultStatus.WINNER, 3)
        result(taras, cup_b, city_b, ResultStatus.WINNER, 1)
        result(nina, cup_a, city_a, ResultStatus.FINALIST, 1)
        result(ghost, cup_a, city_a, ResultStatus.WINNER, 1)
        deactivate_user(store, ghost)

        performers = engine.standings.top_performers()
        assert [(p.full_name, p.wins, p.first_places) for p in performers] == [
            ("Taras", 2, 1), ("Iryna", 2, 0), ("Marko", 1, 1)
        ]
        assert performers[0].total_participations == 2
        assert [p.full_name for p in engine.standings.top_performers(limit=2)] == ["Taras", "Iryna"]

    def test_top_performers_limit_must_be_positive(self, engine):
        with pytest.raises(InvalidOperation):
            engine.standings.top_performers(limit=0)

    def test_leaderboard_competitions(self, engine, factory):
        active_id = factory.competition(status=CompetitionStatus.ACTIVE, name="Active Cup")
        factory.competition(status=CompetitionStatus.COMPLETED, name="Done Cup")
        factory.competition(status=CompetitionStatus.DRAFT, name="Draft Cup")
        city_id = factory.branch(active_id, "Kyiv")
        factory.scored_round(active_id, city_id, 1, [10, 20])
        finale_id, entry_ids = factory.scored_round(active_id, city_id, 2, [30], is_finale=True)
        decide(engine, finale_id, entry_ids)

        listing = engine.standings.leaderboard_competitions()
        assert [(c.name, c.round_count, c.completed_finales, c.participant_count) for c in listing] == [
            ("Active Cup", 2, 1, 3), ("Done Cup", 0, 0, 0)
        ]


class TestOpenCompetitions:

    @pytest.fixture
    def listing(self, factory, store):
        spring = factory.competition(status=CompetitionStatus.ACTIVE, registration_open=True, name="Spring Cup")
        kyiv = factory.branch(spring, "Kyiv")
        lviv = factory.branch(spring, "Lviv")
        deactivate_city(store, factory.branch(spring, "Poltava"))
        factory.participants(spring, kyiv, 2)
        factory.participants(spring, lviv, 1)

        autumn = factory.competition(status=CompetitionStatus.DRAFT, registration_open=False, name="Autumn Cup")
        factory.branch(autumn, "Odesa")
        factory.competition(status=CompetitionStatus.ARCHIVED, registration_open=False, name="Old Cup")
        return {"kyiv": kyiv, "lviv": lviv}

    def test_open_registration_first(self, engine, listing):
        competitions = engine.standings.open_competitions()

        assert [c.name for c in competitions] == ["Spring Cup", "Autumn Cup"]
        spring = competitions[0]
        assert [(c.city_name, c.participant_count) for c in spring.cities] == [("Kyiv", 2), ("Lviv", 1)]
        assert spring.total_participants == 3

    def test_filters(self, engine, listing):
        assert [c.name for c in engine.standings.open_competitions(search="autumn")] == ["Autumn Cup"]
        assert [c.name for c in engine.standings.open_competitions(registration_open=True)] == ["Spring Cup"]
        assert [c.name for c in engine.standings.open_competitions(status="DRAFT")] == ["Autumn Cup"]

    def test_city_filter(self, engine, listing):
        competitions = engine.standings.open_competitions(city_id=listing["lviv"])

        assert [c.name for c in competitions] == ["Spring Cup"]
        assert [c.city_name for c in competitions[0].cities] == ["Lviv"]
        assert competitions[0].total_participants == 1
