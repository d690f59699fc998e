from pydantic import BaseModel
from typing import Optional, List


class ScoreRecord(BaseModel):
    """One row of a score sheet, matched by mi_id first, then email"""
    mi_id: Optional[str] = None
    email: Optional[str] = None
    score: float
    notes: Optional[str] = None

    @property
    def identifier(self) -> Optional[str]:
        return self.mi_id or self.email


class ScoreUploadReport(BaseModel):
    success: int = 0
    skipped: int = 0
    failed: int = 0
    errors: List[str] = []
