import pytest

from radrvu.study_models import WorklistEntry
from radrvu.totals import compute_totals, confidence_band


def _entry(value, quantity=1, code="71045"):
    return WorklistEntry(id=f"{code}-{value}-{quantity}", code=code, description="x", value=value,
                         quantity=quantity, confidence=1.0)


def test_end_to_end_chest_totals():
    totals = compute_totals([_entry(0.22)], 35.00)
    assert totals.total_value == pytest.approx(0.22)
    assert totals.total_earnings == pytest.approx(7.70)
    assert totals.entry_count == 1


def test_quantity_weights_value_and_count():
    totals = compute_totals([_entry(1.02, quantity=3), _entry(0.22, quantity=2)], 10.0)
    assert totals.total_value == pytest.approx(3.50)
    assert totals.total_earnings == pytest.approx(35.0)
    # 行数ではなく件数
    assert totals.entry_count == 5


def test_empty_worklist_and_zero_rate():
    assert compute_totals([], 35.0).entry_count == 0
    assert compute_totals([], 35.0).total_value == 0
    assert compute_totals([_entry(1.0)], 0.0).total_earnings == 0


@pytest.mark.parametrize("score,band", [
    (1.0, "high"), (0.9, "high"), (0.89, "probable"), (0.7, "probable"), (0.69, "verify"), (0.0, "verify"),
])
def test_confidence_band(score, band):
    assert confidence_band(score) == band


def test_confidence_band_custom_thresholds():
    assert confidence_band(0.8, {"high": 0.75, "probable": 0.5}) == "high"
