import base64
import json
from typing import Dict, List, Sequence

import requests

from radrvu.study_models import ExtractionRecord, ReferenceEntry, clamp_confidence, coerce_quantity, is_number


class ExtractionError(RuntimeError):
    """OCR/抽出サービスの失敗（通信エラー・不正なレスポンス）"""


RESPONSE_SCHEMA = {
    "type": "OBJECT",
    "properties": {
        "studies": {
            "type": "ARRAY",
            "items": {
                "type": "OBJECT",
                "properties": {
                    "cpt": {"type": "STRING", "description": "CPT code if matched, otherwise leave blank or 'UNK'"},
                    "name": {"type": "STRING", "description": "Descriptive name of the study"},
                    "quantity": {"type": "NUMBER", "description": "Number of times this study appears"},
                    "originalText": {"type": "STRING", "description": "Raw text found in image"},
                    "confidence": {"type": "NUMBER", "description": "Matching confidence 0-1"},
                },
                "required": ["name", "quantity"],
            },
        }
    },
}


def build_reference_context(references: Sequence[ReferenceEntry]) -> str:
    """参照テーブルを "CODE: DESCRIPTION" 形式の行に整形"""
    return "\n".join(f"{r.code}: {r.description}" for r in references)


def _strip_code_fence(content: str) -> str:
    text = content.strip()
    if "```json" in text:
        start = text.find("```json") + 7
        end = text.find("```", start)
        return text[start:end if end != -1 else None].strip()
    if text.startswith("```") and text.endswith("```"):
        return text[3:-3].strip()
    return text


def parse_extraction_payload(content: str, default_confidence: float = 0.5) -> List[ExtractionRecord]:
    """抽出サービスのJSONを検証して ExtractionRecord に変換

    1件でも形が不正ならバッチ全体を失敗扱いにする（推測データを混ぜない）。
    """
    try:
        data = json.loads(_strip_code_fence(content or ""))
    except (json.JSONDecodeError, ValueError) as e:
        raise ExtractionError(f"response is not valid JSON: {e}") from e

    if not isinstance(data, dict):
        raise ExtractionError("response must be a JSON object")
    studies = data.get("studies", [])
    if not isinstance(studies, list):
        raise ExtractionError("'studies' must be a list")

    records: List[ExtractionRecord] = []
    for i, item in enumerate(studies):
        if not isinstance(item, dict):
            raise ExtractionError(f"studies[{i}] must be an object")
        name = item.get("name")
        if not isinstance(name, str) or not name.strip():
            raise ExtractionError(f"studies[{i}].name is missing")

        quantity = item.get("quantity")
        if quantity is None:
            quantity = 1
        elif not is_number(quantity):
            raise ExtractionError(f"studies[{i}].quantity must be a number")

        confidence = item.get("confidence")
        if confidence is None:
            confidence = default_confidence
        elif not is_number(confidence):
            raise ExtractionError(f"studies[{i}].confidence must be a number")

        cpt = item.get("cpt")
        original_text = item.get("originalText")
        records.append(ExtractionRecord(
            raw_name=name.strip(),
            raw_code=str(cpt).strip() if cpt not in (None, "") else None,
            quantity=coerce_quantity(quantity),
            confidence=clamp_confidence(confidence),
            original_text=original_text.strip() if isinstance(original_text, str) and original_text.strip() else None,
        ))
    return records


class GeminiExtractionClient:
    """Gemini API クライアント（ワークリスト画像から検査を抽出）"""

    def __init__(self, api_key: str, model: str = "gemini-2.5-flash", timeout: int = 60,
                 default_confidence: float = 0.5):
        if not api_key:
            raise ValueError("GEMINI_API_KEY is not set")
        self.api_key = api_key
        self.model = model
        self.timeout = timeout
        self.default_confidence = default_confidence
        self.base_url = "https://generativelanguage.googleapis.com/v1beta/models"
        self.headers = {
            "x-goog-api-key": api_key,
            "Content-Type": "application/json",
        }

    def _system_prompt(self, reference_context: str) -> str:
        return f"""
You are a professional Radiology Medical Coder.
Analyze the provided image (which is a screenshot of a radiology worklist, PACS, or report list).
1. Extract all radiology studies performed.
2. Match each extracted study to the most likely CPT code from the provided reference list.
3. If a study is found that is NOT in the reference list, use a generic CPT or find the closest match.
4. Provide the quantity (usually 1 per row unless specified).
5. Output JSON only.

Reference List:
{reference_context}
"""

    def _build_request(self, image_bytes: bytes, mime_type: str, reference_context: str) -> Dict:
        return {
            "systemInstruction": {"parts": [{"text": self._system_prompt(reference_context)}]},
            "contents": [{
                "parts": [
                    {"inlineData": {"mimeType": mime_type, "data": base64.b64encode(image_bytes).decode("ascii")}},
                    {"text": "Extract all radiology procedures from this list and return as JSON. "
                             "Match them to the provided CPT codes where possible."},
                ]
            }],
            "generationConfig": {
                "temperature": 0.1,
                "responseMimeType": "application/json",
                "responseSchema": RESPONSE_SCHEMA,
            },
        }

    def extract_studies(self, image_bytes: bytes, mime_type: str, reference_context: str) -> List[ExtractionRecord]:
        """画像から検査一覧を抽出。失敗時は ExtractionError"""
        url = f"{self.base_url}/{self.model}:generateContent"
        data = self._build_request(image_bytes, mime_type, reference_context)

        try:
            response = requests.post(url, headers=self.headers, json=data, timeout=self.timeout)
            response.raise_for_status()
            body = response.json()
        except requests.exceptions.RequestException as e:
            raise ExtractionError(f"extraction request failed: {e}") from e
        except ValueError as e:
            raise ExtractionError(f"extraction response is not JSON: {e}") from e

        return parse_extraction_payload(self._response_text(body), self.default_confidence)

    def _response_text(self, body: Dict) -> str:
        try:
            parts = body["candidates"][0]["content"]["parts"]
        except (KeyError, IndexError, TypeError) as e:
            raise ExtractionError(f"unexpected response shape: {body!r:.200}") from e
        text = "".join(p.get("text", "") for p in parts if isinstance(p, dict))
        if not text:
            raise ExtractionError("empty extraction response")
        return text
