"""
Tests for round creation, promotion, membership and rank upkeep
"""
from datetime import date

import pytest

from models.round import Round, RoundStatus
from models.round_participation import RoundParticipation, QualifiedBy
from models.round_score import RoundScore
from schemas.round import RoundUpdate
from core.exceptions import (
    CompetitionNotFound, DuplicateFinale, DuplicateRound, NoNextRound, RoundNotFound, InvalidOperation,
    AlreadyInRound, ParticipationNotFound, NotInRound, HasSubsequentRounds, NotArchived, NoFieldsToUpdate,
    CityNotInCompetition
)


def entries_of(store, round_id):
    with store.transaction() as db:
        return db.query(RoundParticipation).filter(
            RoundParticipation.round_id == round_id
        ).order_by(RoundParticipation.id).all()


def ranks_of(store, entry_ids):
    with store.transaction() as db:
        by_entry = {
            s.round_participation_id: s.rank_in_round
            for s in db.query(RoundScore).filter(RoundScore.round_participation_id.in_(entry_ids)).all()
        }
    return [by_entry.get(entry_id) for entry_id in entry_ids]


class TestCreateRound:

    def test_first_round_enrolls_every_participation(self, engine, factory, store):
        competition_id = factory.competition()
        city_id = factory.branch(competition_id)
        participation_ids = factory.participants(competition_id, city_id, 4)

        created = engine.rounds.create_round(competition_id, city_id, 1, "Qualifier")

        entries = entries_of(store, created.id)
        assert created.participant_count == 4
        assert sorted(e.participation_id for e in entries) == sorted(participation_ids)
        assert all(e.qualified_by == QualifiedBy.AUTOMATIC for e in entries)

    def test_enrollment_is_idempotent(self, engine, factory, store):
        competition_id = factory.competition()
        city_id = factory.branch(competition_id)
        factory.participants(competition_id, city_id, 3)
        created = engine.rounds.create_round(competition_id, city_id, 1, "Qualifier")

        assert engine.rounds.enroll_first_round(created.id) == 0
        assert len(entries_of(store, created.id)) == 3

    def test_enrollment_only_for_own_city(self, engine, factory):
        competition_id = factory.competition()
        kyiv = factory.branch(competition_id, "Kyiv")
        lviv = factory.branch(competition_id, "Lviv")
        factory.participants(competition_id, kyiv, 2)
        factory.participants(competition_id, lviv, 5)

        created = engine.rounds.create_round(competition_id, kyiv, 1, "Qualifier")
        assert created.participant_count == 2

    def test_later_round_starts_empty(self, engine, factory):
        competition_id = factory.competition()
        city_id = factory.branch(competition_id)
        factory.participants(competition_id, city_id, 3)
        created = engine.rounds.create_round(competition_id, city_id, 2, "Semifinal")
        assert created.participant_count == 0

    def test_date_defaults_to_event_date(self, engine, factory):
        competition_id = factory.competition()
        city_id = factory.branch(competition_id, event_date=date(2026, 4, 18))

        created = engine.rounds.create_round(competition_id, city_id, 1, "Qualifier")
        explicit = engine.rounds.create_round(competition_id, city_id, 2, "Final", round_date=date(2026, 4, 25))

        assert created.round_date == date(2026, 4, 18)
        assert explicit.round_date == date(2026, 4, 25)

    def test_single_finale_per_city(self, engine, factory):
        competition_id = factory.competition()
        city_id = factory.branch(competition_id)
        engine.rounds.create_round(competition_id, city_id, 3, "Grand Final", is_finale=True)

        with pytest.raises(DuplicateFinale) as exc:
            engine.rounds.create_round(competition_id, city_id, 4, "Another Final", is_finale=True)
        assert "Grand Final" in exc.value.detail
        assert exc.value.status_code == 409

    def test_finale_allowed_per_city(self, engine, factory):
        competition_id = factory.competition()
        kyiv = factory.branch(competition_id, "Kyiv")
        lviv = factory.branch(competition_id, "Lviv")
        engine.rounds.create_round(competition_id, kyiv, 2, "Final", is_finale=True)
        engine.rounds.create_round(competition_id, lviv, 2, "Final", is_finale=True)

    def test_duplicate_round_number(self, engine, factory):
        competition_id = factory.competition()
        city_id = factory.branch(competition_id)
        engine.rounds.create_round(competition_id, city_id, 1, "Qualifier")
        with pytest.raises(DuplicateRound):
            engine.rounds.create_round(competition_id, city_id, 1, "Qualifier again")

    def test_missing_competition(self, engine):
        with pytest.raises(CompetitionNotFound):
            engine.rounds.create_round(999, 1, 1, "Qualifier")

    def test_city_must_be_a_branch(self, engine, factory, store):
        competition_id = factory.competition()
        factory.branch(competition_id, "Kyiv")
        lviv = factory.city("Lviv")

        with pytest.raises(CityNotInCompetition) as exc:
            engine.rounds.create_round(competition_id, lviv, 1, "Final", is_finale=True)
        assert exc.value.status_code == 404

        with store.transaction() as db:
            assert db.query(Round).count() == 0

    def test_unknown_city(self, engine, factory):
        competition_id = factory.competition()
        with pytest.raises(CityNotInCompetition) as exc:
            engine.rounds.create_round(competition_id, 9999, 1, "Qualifier")
        assert exc.value.status_code == 404


class TestUpdateRound:

    def test_second_finale_by_update_rejected(self, engine, factory):
        competition_id = factory.competition()
        city_id = factory.branch(competition_id)
        engine.rounds.create_round(competition_id, city_id, 2, "Final", is_finale=True)
        semifinal = engine.rounds.create_round(competition_id, city_id, 1, "Semifinal")

        with pytest.raises(DuplicateFinale):
            engine.rounds.update_round(semifinal.id, RoundUpdate(is_finale=True))

    def test_finale_can_be_updated_itself(self, engine, factory):
        competition_id = factory.competition()
        city_id = factory.branch(competition_id)
        final = engine.rounds.create_round(competition_id, city_id, 2, "Final", is_finale=True)

        updated = engine.rounds.update_round(final.id, RoundUpdate(name="Grand Final", is_finale=True))
        assert updated.name == "Grand Final"

    def test_update_status(self, engine, factory):
        competition_id = factory.competition()
        city_id = factory.branch(competition_id)
        created = engine.rounds.create_round(competition_id, city_id, 1, "Qualifier")
        updated = engine.rounds.update_round(created.id, RoundUpdate(status=RoundStatus.IN_PROGRESS))
        assert updated.status == RoundStatus.IN_PROGRESS

    def test_empty_update(self, engine, factory):
        competition_id = factory.competition()
        city_id = factory.branch(competition_id)
        created = engine.rounds.create_round(competition_id, city_id, 1, "Qualifier")
        with pytest.raises(NoFieldsToUpdate):
            engine.rounds.update_round(created.id, RoundUpdate())


class TestRecalculateRanks:

    def test_ties_get_sequential_ranks(self, engine, factory, store):
        competition_id = factory.competition()
        city_id = factory.branch(competition_id)
        round_id, entry_ids = factory.scored_round(competition_id, city_id, 1, [90, 90, 70])

        assert engine.rounds.recalculate_ranks(round_id) == 3
        assert ranks_of(store, entry_ids) == [1, 2, 3]

        # Stable when nothing changed
        engine.rounds.recalculate_ranks(round_id)
        assert ranks_of(store, entry_ids) == [1, 2, 3]

    def test_ranks_follow_score_order(self, engine, factory, store):
        competition_id = factory.competition()
        city_id = factory.branch(competition_id)
        round_id, entry_ids = factory.scored_round(competition_id, city_id, 1, [10, 30, 20])

        engine.rounds.recalculate_ranks(round_id)
        assert ranks_of(store, entry_ids) == [3, 1, 2]

    def test_null_scores_are_unranked(self, engine, factory, store):
        competition_id = factory.competition()
        city_id = factory.branch(competition_id)
        round_id, entry_ids = factory.scored_round(competition_id, city_id, 1, [50, 80])
        unscored = factory.entry(round_id, factory.participation(factory.user(), competition_id, city_id))
        factory.score(unscored, None)

        engine.rounds.recalculate_ranks(round_id)
        assert ranks_of(store, entry_ids + [unscored]) == [2, 1, None]

    def test_missing_round(self, engine):
        with pytest.raises(RoundNotFound):
            engine.rounds.recalculate_ranks(999)


class TestPromotion:

    def _setup(self, factory, scores):
        competition_id = factory.competition()
        city_id = factory.branch(competition_id)
        round_id, entry_ids = factory.scored_round(competition_id, city_id, 1, scores)
        next_round_id = factory.round(competition_id, city_id, 2)
        return round_id, entry_ids, next_round_id

    def _participations(self, store, entry_ids):
        with store.transaction() as db:
            return {
                e.id: e.participation_id
                for e in db.query(RoundParticipation).filter(RoundParticipation.id.in_(entry_ids)).all()
            }

    def test_promotes_top_scorers_and_completes_round(self, engine, factory, store):
        round_id, entry_ids, next_round_id = self._setup(factory, [50, 90, 70, 10, 80])
        participation_of = self._participations(store, entry_ids)

        result = engine.rounds.promote_to_next_round(round_id, 3)

        assert result.promoted == 3
        assert result.next_round_id == next_round_id
        promoted = {e.participation_id for e in entries_of(store, next_round_id)}
        assert promoted == {participation_of[entry_ids[i]] for i in (1, 2, 4)}
        assert all(e.qualified_by == QualifiedBy.AUTOMATIC for e in entries_of(store, next_round_id))

        with store.transaction() as db:
            assert db.get(Round, round_id).status == RoundStatus.COMPLETED

    def test_promotion_twice_does_not_duplicate(self, engine, factory, store):
        round_id, _, next_round_id = self._setup(factory, [50, 90, 70, 10, 80])

        engine.rounds.promote_to_next_round(round_id, 3)
        again = engine.rounds.promote_to_next_round(round_id, 3)

        assert again.promoted == 0
        assert len(entries_of(store, next_round_id)) == 3

    def test_fewer_scored_than_requested(self, engine, factory, store):
        round_id, _, next_round_id = self._setup(factory, [50, None, 70])
        result = engine.rounds.promote_to_next_round(round_id, 5)
        assert result.promoted == 2

    def test_tie_prefers_earlier_enrollment(self, engine, factory, store):
        round_id, entry_ids, next_round_id = self._setup(factory, [60, 60, 60])
        participation_of = self._participations(store, entry_ids)

        engine.rounds.promote_to_next_round(round_id, 2)

        promoted = {e.participation_id for e in entries_of(store, next_round_id)}
        assert promoted == {participation_of[entry_ids[0]], participation_of[entry_ids[1]]}

    def test_next_round_must_exist(self, engine, factory):
        competition_id = factory.competition()
        city_id = factory.branch(competition_id)
        round_id, _ = factory.scored_round(competition_id, city_id, 1, [10])
        with pytest.raises(NoNextRound):
            engine.rounds.promote_to_next_round(round_id, 1)

    @pytest.mark.parametrize("count", [0, -2])
    def test_count_must_be_positive(self, engine, factory, count):
        round_id, _, _ = self._setup(factory, [10])
        with pytest.raises(InvalidOperation):
            engine.rounds.promote_to_next_round(round_id, count)


class TestMembership:

    def test_manual_add(self, engine, factory, store):
        competition_id = factory.competition()
        city_id = factory.branch(competition_id)
        round_id = factory.round(competition_id, city_id, 2)
        participation_id = factory.participation(factory.user(), competition_id, city_id)

        engine.rounds.add_participant_to_round(round_id, participation_id, operator_id=7)

        entry = entries_of(store, round_id)[0]
        assert entry.qualified_by == QualifiedBy.MANUAL
        assert entry.added_by_admin_id == 7

    def test_manual_add_duplicate(self, engine, factory):
        competition_id = factory.competition()
        city_id = factory.branch(competition_id)
        round_id = factory.round(competition_id, city_id, 2)
        participation_id = factory.participation(factory.user(), competition_id, city_id)

        engine.rounds.add_participant_to_round(round_id, participation_id)
        with pytest.raises(AlreadyInRound):
            engine.rounds.add_participant_to_round(round_id, participation_id)

    def test_manual_add_unknown_participation(self, engine, factory):
        competition_id = factory.competition()
        city_id = factory.branch(competition_id)
        round_id = factory.round(competition_id, city_id, 2)
        with pytest.raises(ParticipationNotFound):
            engine.rounds.add_participant_to_round(round_id, 999)

    def test_manual_add_from_other_competition(self, engine, factory, store):
        competition_id = factory.competition()
        city_id = factory.branch(competition_id)
        round_id = factory.round(competition_id, city_id, 2)
        other_competition = factory.competition(name="Other Cup")
        outsider = factory.participation(factory.user(), other_competition, city_id)

        with pytest.raises(InvalidOperation):
            engine.rounds.add_participant_to_round(round_id, outsider)
        assert entries_of(store, round_id) == []

    def test_opening_round_rejects_other_city(self, engine, factory):
        competition_id = factory.competition()
        kyiv = factory.branch(competition_id, "Kyiv")
        lviv = factory.branch(competition_id, "Lviv")
        round_id = factory.round(competition_id, kyiv, 1)
        visitor = factory.participation(factory.user(), competition_id, lviv)

        with pytest.raises(InvalidOperation):
            engine.rounds.add_participant_to_round(round_id, visitor)

    def test_later_round_accepts_other_city(self, engine, factory, store):
        competition_id = factory.competition()
        kyiv = factory.branch(competition_id, "Kyiv")
        lviv = factory.branch(competition_id, "Lviv")
        finale_id = factory.round(competition_id, kyiv, 2, is_finale=True)
        visitor = factory.participation(factory.user(), competition_id, lviv)

        engine.rounds.add_participant_to_round(finale_id, visitor)
        assert [e.participation_id for e in entries_of(store, finale_id)] == [visitor]

    def test_remove_deletes_score(self, engine, factory, store):
        competition_id = factory.competition()
        city_id = factory.branch(competition_id)
        round_id, entry_ids = factory.scored_round(competition_id, city_id, 1, [40, 30])
        participation_id = entries_of(store, round_id)[0].participation_id

        engine.rounds.remove_participant_from_round(round_id, participation_id)

        assert [e.id for e in entries_of(store, round_id)] == [entry_ids[1]]
        assert ranks_of(store, entry_ids) == [None, 1]
        with pytest.raises(NotInRound):
            engine.rounds.remove_participant_from_round(round_id, participation_id)


class TestDeleteAndArchive:

    def test_delete_newest_first(self, engine, factory, store):
        competition_id = factory.competition()
        city_id = factory.branch(competition_id)
        round_1, _ = factory.scored_round(competition_id, city_id, 1, [10, 20])
        round_2, round_2_entries = factory.scored_round(competition_id, city_id, 2, [30])

        with pytest.raises(HasSubsequentRounds) as exc:
            engine.rounds.delete_round(round_1)
        assert exc.value.kind == "dependency"

        engine.rounds.delete_round(round_2)
        with store.transaction() as db:
            assert db.query(RoundParticipation).filter(RoundParticipation.round_id == round_2).count() == 0
            assert db.query(RoundScore).filter(
                RoundScore.round_participation_id.in_(round_2_entries)
            ).count() == 0

        engine.rounds.delete_round(round_1)
        with store.transaction() as db:
            assert db.query(Round).count() == 0
            assert db.query(RoundScore).count() == 0

    def test_archive_and_unarchive(self, engine, factory, store):
        competition_id = factory.competition()
        city_id = factory.branch(competition_id)
        round_id, _ = factory.scored_round(competition_id, city_id, 1, [10])

        with pytest.raises(NotArchived):
            engine.rounds.unarchive_round(round_id)

        engine.rounds.archive_round(round_id)
        with store.transaction() as db:
            assert db.get(Round, round_id).status == RoundStatus.ARCHIVED
            assert db.query(RoundScore).count() == 1

        engine.rounds.unarchive_round(round_id)
        with store.transaction() as db:
            assert db.get(Round, round_id).status == RoundStatus.PENDING


class TestWinnerImport:

    def _city_with_winner(self, engine, factory, competition_id, city_name, scores):
        city_id = factory.branch(competition_id, city_name)
        finale_id, entry_ids = factory.scored_round(competition_id, city_id, 1, scores, is_finale=True)
        engine.winners.select_winners(finale_id, [
            {"round_participation_id": entry_ids[i], "position": i + 1} for i in range(len(entry_ids))
        ])
        return city_id

    def test_available_winners_grouped_by_city(self, engine, factory):
        competition_id = factory.competition()
        self._city_with_winner(engine, factory, competition_id, "Lviv", [90, 80])
        kyiv = self._city_with_winner(engine, factory, competition_id, "Kyiv", [70])
        grand_final = factory.round(competition_id, kyiv, 2, is_finale=False)

        # Non-finale round only sees its own city's earlier winners
        groups = engine.rounds.available_winners_for_import(grand_final)
        assert [g["city_name"] for g in groups] == ["Kyiv"]
        assert groups[0]["winner_count"] == 1

    def test_import_selected_and_all(self, engine, factory, store):
        competition_id = factory.competition()
        lviv = self._city_with_winner(engine, factory, competition_id, "Lviv", [90, 80, 70])
        self._city_with_winner(engine, factory, competition_id, "Kyiv", [60])
        host = factory.branch(competition_id, "Odesa")
        grand_final = factory.round(competition_id, host, 1, is_finale=True)

        groups = engine.rounds.available_winners_for_import(grand_final)
        assert [(g["city_name"], g["winner_count"]) for g in groups] == [("Kyiv", 1), ("Lviv", 3)]
        assert [w["score"] for w in groups[1]["winners"]] == [90, 80, 70]

        result = engine.rounds.import_selected_winners(grand_final, [{"city_id": lviv, "count": 2}], operator_id=3)
        assert result["imported_count"] == 2
        assert all(e.qualified_by == QualifiedBy.MANUAL for e in entries_of(store, grand_final))

        result = engine.rounds.import_all_winners(grand_final)
        assert result["imported_count"] == 2
        assert len(entries_of(store, grand_final)) == 4
        assert engine.rounds.import_all_winners(grand_final)["imported_count"] == 0
