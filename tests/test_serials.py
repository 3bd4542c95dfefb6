import sys
from pathlib import Path

ROOT = Path(__file__).resolve().parents[1]
if str(ROOT) not in sys.path:
    sys.path.insert(0, str(ROOT))

from stockaudit.core.serials import duplicate_serials, normalize_serial, normalized_serials


def test_normalize_trims_and_uppercases():
    assert normalize_serial("  ab12c ") == "AB12C"


def test_normalize_handles_empty_and_none():
    assert normalize_serial("") == ""
    assert normalize_serial("   ") == ""
    assert normalize_serial(None) == ""


def test_normalized_serials_keeps_blank_positions():
    assert normalized_serials(["a1", " ", "b2"]) == ["A1", "", "B2"]


def test_duplicate_serials_ignores_blanks_and_reports_once():
    assert duplicate_serials(["A1", "", "A2", "A2", "", "A2", "A1"]) == ["A2", "A1"]
