"""
gemini_client.py のテスト
HTTP通信は requests.post をモックする
"""

import json
from unittest.mock import Mock, patch

import pytest
import requests

from radrvu.gemini_client import (
    ExtractionError,
    GeminiExtractionClient,
    build_reference_context,
    parse_extraction_payload,
)
from radrvu.study_models import ReferenceEntry


def _gemini_body(payload):
    return {"candidates": [{"content": {"parts": [{"text": json.dumps(payload)}]}}]}


class TestParseExtractionPayload:
    def test_valid_payload(self):
        content = json.dumps({"studies": [
            {"cpt": "71045", "name": "Chest X-Ray", "quantity": 2, "originalText": " CHEST XR 1V ", "confidence": 0.93},
            {"name": "CT Head", "quantity": 1},
        ]})
        records = parse_extraction_payload(content)
        first, second = records
        assert first.raw_name == "Chest X-Ray"
        assert first.raw_code == "71045"
        assert first.quantity == 2
        assert first.original_text == "CHEST XR 1V"
        assert first.confidence == 0.93
        assert second.raw_code is None
        assert second.original_text is None
        assert second.confidence == 0.5

    def test_defaults_and_clamping(self):
        content = json.dumps({"studies": [
            {"name": "A", "quantity": 0, "confidence": 3},
            {"name": "B", "quantity": 2.6, "confidence": -0.2},
            {"name": "C"},
        ]})
        a, b, c = parse_extraction_payload(content, default_confidence=0.0)
        assert (a.quantity, a.confidence) == (1, 1.0)
        assert (b.quantity, b.confidence) == (3, 0.0)
        assert (c.quantity, c.confidence) == (1, 0.0)

    def test_code_fenced_json(self):
        content = "```json\n{\"studies\": [{\"name\": \"US Thyroid\", \"quantity\": 1}]}\n```"
        assert parse_extraction_payload(content)[0].raw_name == "US Thyroid"

    def test_empty_studies(self):
        assert parse_extraction_payload('{"studies": []}') == []
        assert parse_extraction_payload("{}") == []

    @pytest.mark.parametrize("content", [
        "not json",
        "",
        "[]",
        '{"studies": {"name": "x"}}',
        '{"studies": ["CT Head"]}',
        '{"studies": [{"quantity": 1}]}',
        '{"studies": [{"name": "  ", "quantity": 1}]}',
        '{"studies": [{"name": "CT Head", "quantity": "2"}]}',
        '{"studies": [{"name": "CT Head", "quantity": true}]}',
        '{"studies": [{"name": "CT Head", "quantity": 1, "confidence": "high"}]}',
        '{"studies": [{"name": "CT Head", "quantity": NaN}]}',
    ])
    def test_malformed_shape_fails_whole_batch(self, content):
        with pytest.raises(ExtractionError):
            parse_extraction_payload(content)

    def test_one_bad_record_rejects_the_batch(self):
        content = json.dumps({"studies": [{"name": "CT Head", "quantity": 1}, {"quantity": 1}]})
        with pytest.raises(ExtractionError):
            parse_extraction_payload(content)


def test_build_reference_context():
    refs = [ReferenceEntry("70450", "CT Head w/o Contrast", 1.02), ReferenceEntry("71045", "XR Chest 1 View", 0.22)]
    assert build_reference_context(refs) == "70450: CT Head w/o Contrast\n71045: XR Chest 1 View"


class TestGeminiExtractionClient:
    def test_APIキーがない場合はエラー(self):
        with pytest.raises(ValueError):
            GeminiExtractionClient("")

    def test_画像と参照リストを送信して抽出結果を返す(self):
        # Arrange
        client = GeminiExtractionClient("test-key", model="gemini-test", timeout=5)
        with patch("radrvu.gemini_client.requests.post") as mock_post:
            mock_response = Mock()
            mock_response.status_code = 200
            mock_response.json.return_value = _gemini_body({"studies": [{"name": "CT Head", "quantity": 1}]})
            mock_post.return_value = mock_response

            # Act
            records = client.extract_studies(b"\x89PNG", "image/png", "70450: CT Head w/o Contrast")

            # Assert
            assert [r.raw_name for r in records] == ["CT Head"]
            args, kwargs = mock_post.call_args
            assert args[0].endswith("/gemini-test:generateContent")
            assert kwargs["headers"]["x-goog-api-key"] == "test-key"
            assert kwargs["timeout"] == 5
            body = kwargs["json"]
            inline = body["contents"][0]["parts"][0]["inlineData"]
            assert inline == {"mimeType": "image/png", "data": "iVBORw=="}
            assert "70450: CT Head w/o Contrast" in body["systemInstruction"]["parts"][0]["text"]
            assert body["generationConfig"]["responseMimeType"] == "application/json"

    def test_HTTPエラーは抽出エラーになる(self):
        client = GeminiExtractionClient("test-key")
        with patch("radrvu.gemini_client.requests.post") as mock_post:
            mock_response = Mock()
            mock_response.raise_for_status.side_effect = requests.exceptions.HTTPError("500 Server Error")
            mock_post.return_value = mock_response

            with pytest.raises(ExtractionError):
                client.extract_studies(b"img", "image/jpeg", "")

    def test_通信エラーは抽出エラーになる(self):
        client = GeminiExtractionClient("test-key")
        with patch("radrvu.gemini_client.requests.post", side_effect=requests.exceptions.ConnectionError("down")):
            with pytest.raises(ExtractionError):
                client.extract_studies(b"img", "image/jpeg", "")

    @pytest.mark.parametrize("body", [
        {},
        {"candidates": []},
        {"candidates": [{"content": {"parts": []}}]},
        {"candidates": [{"content": {"parts": [{"text": "oops"}]}}]},
    ])
    def test_想定外のレスポンスは抽出エラーになる(self, body):
        client = GeminiExtractionClient("test-key")
        with patch("radrvu.gemini_client.requests.post") as mock_post:
            mock_response = Mock()
            mock_response.json.return_value = body
            mock_post.return_value = mock_response

            with pytest.raises(ExtractionError):
                client.extract_studies(b"img", "image/jpeg", "")
