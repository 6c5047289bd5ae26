"""
Error taxonomy and non-fatal warnings raised or emitted by the engines.

Fatal errors propagate to the caller, which decides whether to fail the job,
retry the data fetch, or send the invoice to a human reviewer. Warnings are
never raised; they are logged and returned next to the computed result.
"""

from typing import Any, List, Literal, Optional
from pydantic import BaseModel, ConfigDict, Field


class ReconciliationError(Exception):
    """Base class for engine errors."""


class ParseError(ReconciliationError):
    """A monetary or quantity field is not a valid non-negative decimal."""

    def __init__(self, field: Optional[str], value: Any, reason: str = "not a valid decimal"):
        self.field = field
        self.value = value
        self.reason = reason
        location = f" for field '{field}'" if field else ""
        super().__init__(f"Cannot parse {value!r}{location}: {reason}")


class InvalidReconciliationInput(ReconciliationError):
    """The documents passed to reconcile() are structurally insufficient."""


class InvalidStatusTransition(ReconciliationError):
    """A user action is not allowed in the reconciliation's current status."""

    def __init__(self, action: str, status: str):
        self.action = action
        self.status = status
        super().__init__(f"Cannot {action} a reconciliation in status '{status}'")


class EngineWarning(BaseModel):
    """Base for warnings that are reported but never raised."""
    model_config = ConfigDict(frozen=True)

    kind: str
    message: str


class InsufficientDataWarning(EngineWarning):
    """A score dimension had no samples in the data range."""
    kind: Literal["insufficient_data"] = "insufficient_data"
    supplier_id: str
    dimension: str


class AmbiguousMatchWarning(EngineWarning):
    """An invoice line could not be matched to an order line without guessing."""
    kind: Literal["ambiguous_match"] = "ambiguous_match"
    invoice_line_id: str
    description: Optional[str] = None
    candidate_order_line_ids: List[str] = Field(default_factory=list)


class DataIntegrityWarning(EngineWarning):
    """Source rows are inconsistent but the computation can proceed."""
    kind: Literal["data_integrity"] = "data_integrity"
    line_ids: List[str] = Field(default_factory=list)
