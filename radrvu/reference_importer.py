import csv
import io
import math
from dataclasses import dataclass, field
from pathlib import Path
from typing import List, Optional, Tuple

from radrvu.study_models import ReferenceEntry


@dataclass
class ImportResult:
    entries: List[ReferenceEntry] = field(default_factory=list)
    skipped: List[Tuple[int, str]] = field(default_factory=list)  # (行番号, 理由)

    @property
    def ok(self) -> bool:
        return bool(self.entries)


class ReferenceImporter:
    """参照テーブル（CPT・説明・RVU）をCSVからインポートするクラス

    列は [code, description, value, category?, ...]、1行目はヘッダとして読み飛ばす。
    """

    def import_text(self, text: str) -> ImportResult:
        result = ImportResult()
        reader = csv.reader(io.StringIO(text))
        for line_no, row in enumerate(reader, start=1):
            if line_no == 1:
                continue
            if not row or not any(cell.strip() for cell in row):
                continue
            entry, reason = self._parse_row(row)
            if entry is None:
                result.skipped.append((line_no, reason))
            else:
                result.entries.append(entry)
        return result

    def import_file(self, file_path, encoding: str = "utf-8-sig") -> ImportResult:
        """CSVファイルをインポート（BOM付きUTF-8も可）"""
        with open(Path(file_path), "r", encoding=encoding, newline="") as f:
            return self.import_text(f.read())

    def _parse_row(self, row: List[str]) -> Tuple[Optional[ReferenceEntry], str]:
        if len(row) < 3:
            return None, "too_few_columns"
        code = row[0].strip()
        description = row[1].strip()
        if not code or not description:
            return None, "missing_code_or_description"
        value = self._parse_value(row[2])
        if value is None:
            return None, f"invalid_value={row[2].strip()!r}"
        category = row[3].strip() if len(row) > 3 else ""
        return ReferenceEntry(code=code, description=description, value=value, category=category), ""

    def _parse_value(self, value_str: str) -> Optional[float]:
        """RVU文字列を数値に変換（数値でなければNone）"""
        try:
            value = float(value_str.strip())
        except (TypeError, ValueError):
            return None
        if not math.isfinite(value) or value < 0:
            return None
        return value
