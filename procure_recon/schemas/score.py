"""
Supplier score schema and data models.
"""

import calendar
from datetime import datetime, timezone
from decimal import Decimal
from typing import Any, Dict, List, Optional
from pydantic import BaseModel, ConfigDict, Field, model_validator

from procure_recon.errors import InsufficientDataWarning
from procure_recon.utils.dates import to_utc, utc_fields


def subtract_months(moment: datetime, months: int) -> datetime:
    """Same day-of-month `months` earlier, clamped to the month's last day."""
    month_index = moment.year * 12 + (moment.month - 1) - months
    year, month = divmod(month_index, 12)
    month += 1
    day = min(moment.day, calendar.monthrange(year, month)[1])
    return moment.replace(year=year, month=month, day=day)


class DataRange(BaseModel):
    """Inclusive time window the scores are computed over."""
    model_config = ConfigDict(frozen=True)

    start: datetime
    end: datetime

    normalize_bounds = utc_fields("start", "end")

    @model_validator(mode="after")
    def check_order(self) -> "DataRange":
        if self.start > self.end:
            raise ValueError("DataRange start must not be after end")
        return self

    @classmethod
    def trailing(cls, months: int = 12, now: Optional[datetime] = None) -> "DataRange":
        end = to_utc(now) or datetime.now(timezone.utc)
        return cls(start=subtract_months(end, months), end=end)

    def contains(self, moment: Optional[datetime]) -> bool:
        if moment is None:
            return False
        return self.start <= to_utc(moment) <= self.end


class ScoreDimension(BaseModel):
    """One performance dimension. score is None when denominator is 0."""
    model_config = ConfigDict(frozen=True)

    score: Optional[int] = Field(default=None, ge=0, le=100)
    numerator: int = 0
    denominator: int = 0
    details: Dict[str, Any] = Field(default_factory=dict)


class SupplierScore(BaseModel):
    """Composite supplier score and its four dimensions."""
    model_config = ConfigDict(frozen=True)

    supplier_id: str
    composite: Optional[Decimal] = None
    punctuality: ScoreDimension
    conformity: ScoreDimension
    price_competitiveness: ScoreDimension
    reliability: ScoreDimension
    calculated_at: datetime
    data_range: DataRange
    warnings: List[InsufficientDataWarning] = Field(default_factory=list)

    normalize_timestamps = utc_fields("calculated_at")

    def dimensions(self) -> Dict[str, ScoreDimension]:
        return {
            "punctuality": self.punctuality,
            "conformity": self.conformity,
            "price_competitiveness": self.price_competitiveness,
            "reliability": self.reliability,
        }


class SupplierRanking(BaseModel):
    """A row of the supplier ranking."""
    rank: int
    supplier_id: str
    supplier_name: Optional[str] = None
    category: Optional[str] = None
    composite: Optional[Decimal] = None
    punctuality: Optional[int] = None
    conformity: Optional[int] = None
    price_competitiveness: Optional[int] = None
    reliability: Optional[int] = None
    calculated_at: Optional[datetime] = None


class CategoryRisk(BaseModel):
    """Supply risk for one product category."""
    category: str
    supplier_count: int
    average_score: Optional[Decimal] = None
    scored_supplier_count: int
    single_supplier_risk: bool
    risk_level: str  # critical, high, medium, low
