"""
ワークリスト集計
マッチ済みの検査を保持し、まとめ表示・削除を行う
"""

import uuid
from typing import Dict, Iterable, Iterator, List, Tuple

from radrvu.study_models import (
    ConsolidatedRow,
    MatchResult,
    ReferenceEntry,
    WorklistEntry,
    clamp_confidence,
    coerce_quantity,
)


def _new_id() -> str:
    return uuid.uuid4().hex


class Worklist:
    """マッチ済み検査の一覧（挿入順を保持）"""

    def __init__(self, entries: Iterable[WorklistEntry] = ()):
        self._entries: List[WorklistEntry] = list(entries)

    @property
    def entries(self) -> Tuple[WorklistEntry, ...]:
        return tuple(self._entries)

    def __len__(self) -> int:
        return len(self._entries)

    def __iter__(self) -> Iterator[WorklistEntry]:
        return iter(tuple(self._entries))

    def add_matched(self, matches: Iterable[MatchResult]) -> List[WorklistEntry]:
        """マッチ結果を1件ずつエントリとして追加

        バッチ全体を組み立ててから置き換えるので途中までの追加は起きない。
        """
        added: List[WorklistEntry] = []
        for m in matches:
            ref = m.reference
            ex = m.extraction
            added.append(WorklistEntry(
                id=_new_id(),
                code=ref.code,
                description=ref.description,
                value=ref.value,
                quantity=coerce_quantity(ex.quantity),
                confidence=clamp_confidence(ex.confidence),
                source_text=ex.original_text or ex.raw_name,
            ))
        self._entries = self._entries + added
        return added

    def add_manual(self, reference: ReferenceEntry) -> WorklistEntry:
        """手動クイック追加（信頼度1.0）"""
        entry = WorklistEntry(
            id=_new_id(),
            code=reference.code,
            description=reference.description,
            value=reference.value,
            quantity=1,
            confidence=1.0,
        )
        self._entries = self._entries + [entry]
        return entry

    def remove(self, entry_id: str) -> bool:
        remaining = [e for e in self._entries if e.id != entry_id]
        removed = len(remaining) != len(self._entries)
        self._entries = remaining
        return removed

    def remove_group(self, code: str, description: str) -> int:
        """まとめ表示の1行に対応する全エントリを削除"""
        remaining = [e for e in self._entries if (e.code, e.description) != (code, description)]
        removed = len(self._entries) - len(remaining)
        self._entries = remaining
        return removed

    def clear(self):
        self._entries = []

    def to_consolidated_view(self) -> List[ConsolidatedRow]:
        groups: Dict[Tuple[str, str], ConsolidatedRow] = {}
        for e in self._entries:
            key = (e.code, e.description)
            row = groups.get(key)
            if row is None:
                groups[key] = ConsolidatedRow(
                    code=e.code,
                    description=e.description,
                    value=e.value,
                    quantity=e.quantity,
                    confidence=e.confidence,
                    subtotal=e.subtotal,
                    entry_ids=[e.id],
                )
            else:
                row.quantity += e.quantity
                row.confidence = max(row.confidence, e.confidence)
                row.subtotal += e.subtotal
                row.entry_ids.append(e.id)
        return list(groups.values())
