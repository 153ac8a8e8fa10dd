import math
import numbers
from dataclasses import dataclass, field
from typing import List, Optional


def is_number(value) -> bool:
    """有限の実数か（bool は除く）"""
    return isinstance(value, numbers.Real) and not isinstance(value, bool) and math.isfinite(value)


def coerce_quantity(quantity) -> int:
    """件数を四捨五入して1以上の整数にする。数値でなければ ValueError"""
    if not is_number(quantity):
        raise ValueError(f"quantity must be a finite number: {quantity!r}")
    return max(1, int(round(quantity)))


def clamp_confidence(confidence) -> float:
    if not is_number(confidence):
        raise ValueError(f"confidence must be a finite number: {confidence!r}")
    return max(0.0, min(1.0, float(confidence)))


@dataclass(frozen=True)
class ReferenceEntry:
    code: str
    description: str
    value: float
    category: str = ""


@dataclass
class ExtractionRecord:
    """OCR側から返ってきた未検証の抽出結果"""
    raw_name: str
    raw_code: Optional[str] = None
    quantity: int = 1
    confidence: float = 0.5
    original_text: Optional[str] = None


@dataclass(frozen=True)
class WorklistEntry:
    id: str
    code: str
    description: str
    value: float
    quantity: int
    confidence: float
    source_text: Optional[str] = None

    @property
    def subtotal(self) -> float:
        return self.value * self.quantity


@dataclass
class MatchResult:
    reference: ReferenceEntry
    extraction: ExtractionRecord
    score: int
    method: str  # overlap|exact
    reasons: List[str] = field(default_factory=list)


@dataclass
class ConsolidatedRow:
    code: str
    description: str
    value: float
    quantity: int
    confidence: float
    subtotal: float
    entry_ids: List[str] = field(default_factory=list)

    @property
    def entry_count(self) -> int:
        return len(self.entry_ids)


@dataclass(frozen=True)
class Totals:
    total_value: float
    total_earnings: float
    entry_count: int


@dataclass
class ScanReport:
    """1回のアップロード処理の結果"""
    source: str
    added: List[WorklistEntry] = field(default_factory=list)
    dropped: List[ExtractionRecord] = field(default_factory=list)
    error: Optional[str] = None

    @property
    def ok(self) -> bool:
        return self.error is None
