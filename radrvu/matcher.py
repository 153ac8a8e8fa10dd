from typing import Iterable, List, Optional, Sequence, Set, Tuple

from rapidfuzz.distance import JaroWinkler

from radrvu.study_models import ExtractionRecord, MatchResult, ReferenceEntry
from radrvu.text_normalizer import clean_text, significant_word_set, significant_words


DEFAULT_MAX_THRESHOLD = 4


def _similarity(a: str, b: str) -> float:
    if not a or not b:
        return 0.0
    return JaroWinkler.normalized_similarity(a, b)


def overlap_score(query_words: Sequence[str], candidate_words: Set[str]) -> int:
    # クエリ側は重複もカウント、候補側は集合
    return sum(1 for w in query_words if w in candidate_words)


def acceptance_threshold(sig_len: int, max_threshold: int = DEFAULT_MAX_THRESHOLD) -> int:
    """短い検査名ほど必要一致語数を下げる"""
    return min(max_threshold, sig_len)


def _query_text(extraction: ExtractionRecord) -> str:
    return extraction.original_text or extraction.raw_name or ""


def _best_overlap(query: List[str], references: Sequence[ReferenceEntry], max_threshold: int) -> Tuple[Optional[ReferenceEntry], int, int]:
    best: Optional[ReferenceEntry] = None
    best_score = 0
    best_sig_len = 0
    for ref in references:
        cand = significant_word_set(ref.description)
        score = overlap_score(query, cand)
        if score < acceptance_threshold(len(cand), max_threshold):
            continue
        # 同点は先に見つかった方を採用
        if score > best_score:
            best, best_score, best_sig_len = ref, score, len(cand)
    return best, best_score, best_sig_len


def _exact_fallback(extraction: ExtractionRecord, references: Sequence[ReferenceEntry]) -> Optional[ReferenceEntry]:
    names = [clean_text(extraction.raw_name), clean_text(extraction.original_text or "")]
    names = [n for n in names if n]
    if not names:
        return None
    for name in names:
        for ref in references:
            if clean_text(ref.description) == name:
                return ref
    return None


def match_extraction(extraction: ExtractionRecord, references: Sequence[ReferenceEntry],
                     max_threshold: int = DEFAULT_MAX_THRESHOLD) -> Optional[MatchResult]:
    """抽出結果を参照テーブルの1件に対応付ける。見つからなければNone"""
    query_text = _query_text(extraction)
    query = significant_words(query_text)

    ref, score, sig_len = _best_overlap(query, references, max_threshold)
    if ref is not None:
        reasons = [
            f"overlap={score}/{sig_len}(th={acceptance_threshold(sig_len, max_threshold)})",
            f"name~{int(_similarity(clean_text(query_text), clean_text(ref.description)) * 100)}",
        ]
        if extraction.raw_code and extraction.raw_code != ref.code:
            reasons.append(f"hint_code={extraction.raw_code}≠{ref.code}")
        return MatchResult(reference=ref, extraction=extraction, score=score, method="overlap", reasons=reasons)

    ref = _exact_fallback(extraction, references)
    if ref is not None:
        return MatchResult(reference=ref, extraction=extraction, score=0, method="exact", reasons=["exact_normalized"])
    return None


def match_reference(extraction: ExtractionRecord, references: Sequence[ReferenceEntry],
                    max_threshold: int = DEFAULT_MAX_THRESHOLD) -> Optional[ReferenceEntry]:
    result = match_extraction(extraction, references, max_threshold)
    return result.reference if result else None


def match_all(extractions: Iterable[ExtractionRecord], references: Sequence[ReferenceEntry],
              max_threshold: int = DEFAULT_MAX_THRESHOLD) -> Tuple[List[MatchResult], List[ExtractionRecord]]:
    """(マッチした結果, 捨てた抽出結果) を返す"""
    matched: List[MatchResult] = []
    dropped: List[ExtractionRecord] = []
    for ex in extractions:
        result = match_extraction(ex, references, max_threshold)
        if result is None:
            dropped.append(ex)
        else:
            matched.append(result)
    return matched, dropped


def closest_descriptions(name: str, references: Sequence[ReferenceEntry], limit: int = 3) -> List[Tuple[ReferenceEntry, float]]:
    """診断用: 名称の近い参照エントリを類似度順に返す（マッチ結果には使わない）"""
    target = clean_text(name)
    scored = [(ref, _similarity(target, clean_text(ref.description))) for ref in references]
    scored = [s for s in scored if s[1] > 0]
    scored.sort(key=lambda x: x[1], reverse=True)
    return scored[:limit]
