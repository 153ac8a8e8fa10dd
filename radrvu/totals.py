from typing import Dict, Iterable, Optional

from radrvu.study_models import Totals, WorklistEntry


def compute_totals(entries: Iterable[WorklistEntry], rate: float) -> Totals:
    """合計RVU・件数・換算額を計算（まとめ表示ではなく元の一覧から）"""
    total_value = 0.0
    count = 0
    for e in entries:
        total_value += e.value * e.quantity
        count += e.quantity
    return Totals(total_value=total_value, total_earnings=total_value * rate, entry_count=count)


def confidence_band(score: float, bands: Optional[Dict] = None) -> str:
    bands = bands or {"high": 0.9, "probable": 0.7}
    if score >= bands.get("high", 0.9):
        return "high"
    if score >= bands.get("probable", 0.7):
        return "probable"
    return "verify"
