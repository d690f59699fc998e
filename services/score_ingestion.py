import logging
from typing import List, Union
from pydantic import ValidationError
from sqlalchemy.exc import SQLAlchemyError
from db import Store
from schemas.score import ScoreRecord, ScoreUploadReport
from api.crud.round_participation_crud import find_entry_by_identifier
from api.crud.score_crud import get_score, create_score, upsert_score, delete_round_scores, recalculate_ranks
from core.exceptions import UploadTooLarge
from core.validators import validate_round_exists, validate_round_participation_exists

logger = logging.getLogger(__name__)

MISSING_IDENTIFIER = "Row missing both email and mi_id"


class ScoreIngestionPipeline:
    """
    Bulk and single score writes for one round.

    Bulk upload never overwrites: a membership that already has a score is
    skipped. Ranks are recalculated once per batch, not once per record.
    """

    def __init__(self, store: Store):
        self.store = store
        self.settings = store.settings

    def upload_scores(self, round_id: int, records: List[Union[ScoreRecord, dict]],
                      operator_id: int = None) -> ScoreUploadReport:
        max_records = self.settings.score_upload_max_records
        if len(records) > max_records:
            raise UploadTooLarge(max_records)

        report = ScoreUploadReport()

        with self.store.transaction() as db:
            validate_round_exists(db, round_id)

            for index, raw in enumerate(records, start=1):
                try:
                    record = raw if isinstance(raw, ScoreRecord) else ScoreRecord(**raw)
                except ValidationError as e:
                    self._fail(report, f"Row {index}: invalid record ({e.errors()[0]['msg']})")
                    continue

                identifier = record.identifier
                if not identifier:
                    self._fail(report, MISSING_IDENTIFIER)
                    continue

                entry = find_entry_by_identifier(db, round_id, mi_id=record.mi_id, email=record.email)
                if not entry:
                    self._fail(report, f"Not found in this round: {identifier}")
                    continue

                if get_score(db, entry.id):
                    report.skipped += 1
                    continue

                try:
                    with db.begin_nested():
                        create_score(db, entry.id, record.score, record.notes, operator_id)
                    report.success += 1
                except SQLAlchemyError as e:
                    logger.warning(f"Round {round_id}: could not store score for {identifier}: {e}")
                    self._fail(report, f"Could not store score for {identifier}")

            recalculate_ranks(db, round_id)

        logger.info(
            f"Round {round_id} score upload: {report.success} inserted, "
            f"{report.skipped} skipped, {report.failed} failed"
        )
        return report

    def clear_scores(self, round_id: int, operator_id: int = None) -> dict:
        """Drop every score of the round, memberships stay"""
        with self.store.transaction() as db:
            validate_round_exists(db, round_id)
            deleted = delete_round_scores(db, round_id)
            logger.info(f"Round {round_id}: {deleted} scores cleared by operator {operator_id}")
            return {"deleted_count": deleted}

    def update_score(self, round_participation_id: int, score: float = None, notes: str = None,
                     operator_id: int = None) -> dict:
        with self.store.transaction() as db:
            entry = validate_round_participation_exists(db, round_participation_id)
            db_score = upsert_score(db, entry.id, score, notes, operator_id)
            recalculate_ranks(db, entry.round_id)
            return {
                "round_participation_id": entry.id,
                "score": db_score.score,
                "rank_in_round": db_score.rank_in_round,
                "notes": db_score.notes,
            }

    def _fail(self, report: ScoreUploadReport, message: str):
        report.failed += 1
        if len(report.errors) < self.settings.score_upload_max_errors:
            report.errors.append(message)
