"""
検査名テキストの正規化
略語展開・記号除去を行い、スコアリング単位となる「有意語」を取り出す
"""

import re
from typing import List, Set


# 完全一致のみ（あいまい展開はしない）
ABBREVIATIONS = {
    "us": "ultrasound",
    "bx": "biopsy",
    "mammo": "mammogram",
    "xr": "xray",
    "cr": "xray",
    "dr": "xray",
    "xrays": "xray",
    "mr": "mri",
    "w": "with",
    "wo": "without",
    "bil": "bilateral",
    "bilat": "bilateral",
    "unilat": "unilateral",
    "cont": "contrast",
    "abd": "abdomen",
    "pelv": "pelvis",
    "cerv": "cervical",
    "lumb": "lumbar",
    "scr": "screening",
    "scrn": "screening",
    "dx": "diagnostic",
    "diag": "diagnostic",
    "fu": "followup",
    "ang": "angio",
    "thor": "thoracic",
    "ext": "extremity",
    "v": "view",
    "vw": "view",
    "vws": "view",
    "views": "view",
}

# 左右はマッチングに影響させない
DIRECTIONAL_WORDS = frozenset({"lt", "rt", "left", "right"})
FILLER_WORDS = frozenset({"the", "and", "for", "or", "of", "in"})

_NON_ALNUM = re.compile(r"[^a-z0-9]")
_SPLIT = re.compile(r"[^a-z0-9/]+")
_EDGE_PUNCT = re.compile(r"^[^a-z0-9]+|[^a-z0-9]+$")
_DIGIT_LETTER = re.compile(r"(\d)([a-z])")


def clean_text(text: str) -> str:
    """小文字化して英数字以外をすべて除去"""
    if not text:
        return ""
    return _NON_ALNUM.sub("", text.lower())


def normalize_token(token: str) -> str:
    cleaned = clean_text(token)
    return ABBREVIATIONS.get(cleaned, cleaned)


def significant_words(text: str) -> List[str]:
    """有意語を出現順に返す（重複はそのまま残す）

    "1V" のように数字の直後に文字が続くものは "1 v" として分割する。
    """
    if not text:
        return []
    lowered = _DIGIT_LETTER.sub(r"\1 \2", text.lower())

    words: List[str] = []
    for raw in _SPLIT.split(lowered):
        token = normalize_token(_EDGE_PUNCT.sub("", raw))
        if not token:
            continue
        if token in DIRECTIONAL_WORDS or token in FILLER_WORDS:
            continue
        words.append(token)
    return words


def significant_word_set(text: str) -> Set[str]:
    return set(significant_words(text))
