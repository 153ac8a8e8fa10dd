"""
アプリケーション状態とユーザー操作ハンドラ
状態は AppState にまとめ、各ハンドラが受け取って更新する
"""

import math
import mimetypes
import uuid
from dataclasses import dataclass, field
from pathlib import Path
from typing import Callable, List, Optional, Sequence, Union

from radrvu.config_loader import load_matching_config
from radrvu.execution_lock import ScanInProgressError, ScanLock
from radrvu.gemini_client import ExtractionError, build_reference_context
from radrvu.matcher import closest_descriptions, match_all
from radrvu.reference_data import RADIOLOGY_STUDY_DB
from radrvu.reference_importer import ImportResult, ReferenceImporter
from radrvu.study_models import ConsolidatedRow, ReferenceEntry, ScanReport, Totals, WorklistEntry
from radrvu.totals import compute_totals
from radrvu.worklist import Worklist

NOT_AN_IMAGE = "Please upload an image file (PNG, JPG, etc.)"
SCAN_FAILED = "AI Analysis failed. Please try a clearer image."
SCAN_BUSY = "A scan is already in progress. Please wait for it to finish."
IMPORT_EMPTY = "No valid rows found in the reference table; keeping the current one."


@dataclass
class AppState:
    references: List[ReferenceEntry]
    rate: float
    config: dict
    worklist: Worklist = field(default_factory=Worklist)
    consolidated: bool = False
    error: Optional[str] = None
    lock: ScanLock = field(default_factory=ScanLock)

    @property
    def scanning(self) -> bool:
        return self.lock.locked


def new_state(config: Optional[dict] = None, references: Optional[Sequence[ReferenceEntry]] = None) -> AppState:
    cfg = config or load_matching_config()
    return AppState(
        references=list(references) if references is not None else list(RADIOLOGY_STUDY_DB),
        rate=float(cfg["rate"]["default"]),
        config=cfg,
    )


def parse_rate(value) -> float:
    """換算レート（$ / RVU）を解釈。数値でない・正でない場合は0"""
    try:
        rate = float(value)
    except (TypeError, ValueError):
        return 0.0
    if not math.isfinite(rate) or rate <= 0:
        return 0.0
    return rate


def set_rate(state: AppState, value) -> float:
    state.rate = parse_rate(value)
    return state.rate


def guess_image_type(path: Union[str, Path]) -> Optional[str]:
    mime, _ = mimetypes.guess_type(str(path))
    if mime and mime.startswith("image/"):
        return mime
    return None


def scan_image_bytes(state: AppState, image_bytes: bytes, mime_type: str, client, source: str = "") -> ScanReport:
    """画像1枚を抽出→マッチ→ワークリスト追加

    抽出に失敗した場合はワークリストを変更しない。
    クライアントが何を投げても呼び出し元へは伝播させず、ScanReport.error に載せる。
    """
    report = ScanReport(source=source)
    scan_id = uuid.uuid4().hex
    try:
        with state.lock.hold(scan_id, {"source": source}):
            print(f"🔍 スキャン中: {source or mime_type}")
            records = client.extract_studies(image_bytes, mime_type, build_reference_context(state.references))
            matches, dropped = match_all(records, state.references, state.config["matching"]["max_threshold"])
            report.added = state.worklist.add_matched(matches)
            report.dropped = dropped
    except ScanInProgressError:
        report.error = SCAN_BUSY
        state.error = SCAN_BUSY
        print(f"⚠️ {SCAN_BUSY}")
        return report
    except ExtractionError as e:
        report.error = SCAN_FAILED
        state.error = SCAN_FAILED
        print(f"❌ 抽出エラー: {e}")
        return report
    except Exception as e:
        # 他のアダプタが投げる例外もここで止める
        report.error = SCAN_FAILED
        state.error = SCAN_FAILED
        print(f"❌ スキャン失敗: {type(e).__name__}: {e}")
        return report

    state.error = None
    print(f"✅ {len(report.added)}件追加 / {len(report.dropped)}件未マッチ")
    limit = state.config["matching"].get("suggestions", 3)
    for ex in report.dropped:
        near = closest_descriptions(ex.original_text or ex.raw_name, state.references, limit)
        hint = ", ".join(f"{r.code} {r.description} ({s:.2f})" for r, s in near) or "-"
        print(f"  ⏭️ 未マッチ: '{ex.original_text or ex.raw_name}' 近い候補: {hint}")
    return report


def upload_image(state: AppState, image_path: Union[str, Path], client) -> ScanReport:
    path = Path(image_path)
    mime = guess_image_type(path)
    if mime is None:
        state.error = NOT_AN_IMAGE
        print(f"⚠️ 画像ファイルではありません: {path}")
        return ScanReport(source=str(path), error=NOT_AN_IMAGE)
    try:
        image_bytes = path.read_bytes()
    except OSError as e:
        message = f"Could not read {path.name}: {e.strerror or e}"
        state.error = message
        print(f"❌ 読み込みエラー: {e}")
        return ScanReport(source=str(path), error=message)
    return scan_image_bytes(state, image_bytes, mime, client, source=str(path))


def quick_pick_entries(state: AppState) -> List[ReferenceEntry]:
    return state.references[:state.config["quick_add"]["limit"]]


def quick_add(state: AppState, reference: ReferenceEntry) -> WorklistEntry:
    entry = state.worklist.add_manual(reference)
    print(f"➕ 手動追加: {reference.code} {reference.description}")
    return entry


def quick_add_code(state: AppState, code: str) -> Optional[WorklistEntry]:
    for ref in state.references:
        if ref.code == code:
            return quick_add(state, ref)
    state.error = f"Unknown code: {code}"
    return None


def delete_entry(state: AppState, entry_id: str) -> bool:
    return state.worklist.remove(entry_id)


def delete_group(state: AppState, code: str, description: str) -> int:
    """まとめ表示の行を削除（同じ code+description の全エントリ）"""
    return state.worklist.remove_group(code, description)


def toggle_consolidated(state: AppState) -> bool:
    state.consolidated = not state.consolidated
    return state.consolidated


def visible_rows(state: AppState) -> Union[List[WorklistEntry], List[ConsolidatedRow]]:
    if state.consolidated:
        return state.worklist.to_consolidated_view()
    return list(state.worklist.entries)


def clear_worklist(state: AppState, confirm: Callable[[], bool]) -> bool:
    """確認が取れた場合のみ一括クリア"""
    if not confirm():
        return False
    state.worklist.clear()
    return True


def import_references(state: AppState, text: str) -> ImportResult:
    """参照テーブルを丸ごと置き換え（有効行0件なら現状維持）"""
    result = ReferenceImporter().import_text(text)
    for line_no, reason in result.skipped:
        print(f"  ⏭️ {line_no}行目をスキップ: {reason}")
    if not result.ok:
        state.error = IMPORT_EMPTY
        print(f"⚠️ {IMPORT_EMPTY}")
        return result
    state.references = list(result.entries)
    state.error = None
    print(f"📥 参照テーブルを更新: {len(result.entries)}件")
    return result


def current_totals(state: AppState) -> Totals:
    return compute_totals(state.worklist.entries, state.rate)
