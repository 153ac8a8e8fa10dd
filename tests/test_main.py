from unittest.mock import MagicMock, patch

import pytest

from radrvu.gemini_client import GeminiExtractionClient
from radrvu.main import main
from radrvu.reference_data import RADIOLOGY_STUDY_DB
from radrvu.study_models import ExtractionRecord


@pytest.fixture
def base_args(tmp_path):
    return ["--env-file", str(tmp_path / "none.env"), "--config", str(tmp_path / "none.yml")]


def test_references_lists_default_table(base_args, capsys):
    assert main(base_args + ["references"]) == 0
    out = capsys.readouterr().out
    assert "70450" in out
    assert f"計 {len(RADIOLOGY_STUDY_DB)}件" in out


def test_references_from_csv(base_args, tmp_path, capsys):
    csv_path = tmp_path / "refs.csv"
    csv_path.write_text("code,description,value\n77074,Bone Survey,0.45\n", encoding="utf-8")
    assert main(base_args + ["--references", str(csv_path), "references"]) == 0
    out = capsys.readouterr().out
    assert "77074" in out
    assert "計 1件" in out


def test_missing_reference_file_fails(base_args, tmp_path):
    assert main(base_args + ["--references", str(tmp_path / "nope.csv"), "references"]) == 1


def test_scan_without_api_key_fails(base_args, tmp_path, monkeypatch):
    monkeypatch.delenv("GEMINI_API_KEY", raising=False)
    monkeypatch.delenv("API_KEY", raising=False)
    image = tmp_path / "shot.png"
    image.write_bytes(b"png")
    assert main(base_args + ["scan", str(image)]) == 1


def test_scan_prints_worklist_and_totals(base_args, tmp_path, monkeypatch, capsys):
    monkeypatch.setenv("GEMINI_API_KEY", "test-key")
    image = tmp_path / "shot.png"
    image.write_bytes(b"png")
    client = MagicMock(spec=GeminiExtractionClient)
    client.extract_studies.return_value = [
        ExtractionRecord(raw_name="Chest X-Ray", original_text="CHEST XR 1V", quantity=1, confidence=0.95),
        ExtractionRecord(raw_name="Chest X-Ray", original_text="CHEST XR 1V", quantity=1, confidence=0.8),
    ]

    with patch("radrvu.main.GeminiExtractionClient", return_value=client):
        code = main(base_args + ["scan", str(image), "--rate", "35", "--consolidate"])

    out = capsys.readouterr().out
    assert code == 0
    assert "71045" in out
    assert "(2行)" in out
    assert "件数: 2" in out
    assert "$15.40" in out


def test_scan_failure_returns_nonzero(base_args, tmp_path, monkeypatch, capsys):
    monkeypatch.setenv("GEMINI_API_KEY", "test-key")
    not_image = tmp_path / "list.pdf"
    not_image.write_bytes(b"%PDF")
    with patch("radrvu.main.GeminiExtractionClient"):
        assert main(base_args + ["scan", str(not_image)]) == 1


def test_common_options_after_subcommand(tmp_path, capsys):
    csv_path = tmp_path / "refs.csv"
    csv_path.write_text("code,description,value\n77074,Bone Survey,0.45\n", encoding="utf-8")
    argv = ["references", "--references", str(csv_path),
            "--config", str(tmp_path / "none.yml"), "--env-file", str(tmp_path / "none.env")]

    assert main(argv) == 0
    out = capsys.readouterr().out
    assert "77074" in out
    assert "計 1件" in out


def test_option_before_subcommand_is_kept(base_args, tmp_path, capsys):
    # サブコマンド側の未指定オプションで上書きされないこと
    csv_path = tmp_path / "refs.csv"
    csv_path.write_text("code,description,value\n77074,Bone Survey,0.45\n", encoding="utf-8")
    assert main(["--references", str(csv_path)] + base_args + ["references"]) == 0
    assert "計 1件" in capsys.readouterr().out


def test_scan_accepts_config_after_images(base_args, tmp_path, monkeypatch, capsys):
    monkeypatch.setenv("GEMINI_API_KEY", "test-key")
    image = tmp_path / "shot.png"
    image.write_bytes(b"png")
    config = tmp_path / "rate.yml"
    config.write_text("rate:\n  default: 10\n", encoding="utf-8")
    client = MagicMock(spec=GeminiExtractionClient)
    client.extract_studies.return_value = [ExtractionRecord(raw_name="Chest X-Ray", original_text="CHEST XR 1V")]

    with patch("radrvu.main.GeminiExtractionClient", return_value=client):
        code = main(base_args + ["scan", str(image), "--config", str(config)])

    assert code == 0
    assert "@ $10.00/RVU" in capsys.readouterr().out


def test_invalid_config_value_fails(base_args, tmp_path, capsys):
    config = tmp_path / "bad.yml"
    config.write_text("matching: null\n", encoding="utf-8")
    assert main(base_args + ["references", "--config", str(config)]) == 1
    assert "設定ファイルを読み込めません" in capsys.readouterr().out
