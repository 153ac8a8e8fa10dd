import argparse
import os
import sys
from pathlib import Path
from typing import List, Optional

from dotenv import load_dotenv

from radrvu.app_state import (
    AppState,
    current_totals,
    import_references,
    new_state,
    set_rate,
    upload_image,
    visible_rows,
)
from radrvu.config_loader import load_matching_config
from radrvu.gemini_client import GeminiExtractionClient
from radrvu.study_models import ConsolidatedRow
from radrvu.totals import confidence_band

BAND_MARKS = {"high": "🟢", "probable": "🟡", "verify": "🔴"}


def build_client(cfg: dict) -> GeminiExtractionClient:
    api_key = os.getenv("GEMINI_API_KEY") or os.getenv("API_KEY")
    extraction = cfg["extraction"]
    return GeminiExtractionClient(
        api_key=api_key,
        model=os.getenv("GEMINI_MODEL") or extraction["model"],
        timeout=int(extraction["timeout"]),
        default_confidence=float(extraction["default_confidence"]),
    )


def load_references(state: AppState, csv_path: Optional[str]) -> bool:
    if not csv_path:
        return True
    try:
        text = Path(csv_path).read_text(encoding="utf-8-sig")
    except OSError as e:
        print(f"❌ 参照テーブルを読み込めません: {e}")
        return False
    import_references(state, text)
    return True


def print_worklist(state: AppState):
    rows = visible_rows(state)
    if not rows:
        print("（検査はまだありません）")
    bands = state.config.get("confidence_bands")
    for row in rows:
        mark = BAND_MARKS[confidence_band(row.confidence, bands)]
        if isinstance(row, ConsolidatedRow):
            print(f"{mark} {row.code:<6} {row.description:<40} x{row.quantity:<3} {row.value:>5.2f} {row.subtotal:>7.2f}  ({row.entry_count}行)")
        else:
            source = f"  <- {row.source_text}" if row.source_text else ""
            print(f"{mark} {row.code:<6} {row.description:<40} x{row.quantity:<3} {row.value:>5.2f} {row.subtotal:>7.2f}{source}")

    totals = current_totals(state)
    print("-" * 72)
    print(f"📊 件数: {totals.entry_count}  合計RVU: {totals.total_value:.2f}  "
          f"換算額: ${totals.total_earnings:,.2f} (@ ${state.rate:.2f}/RVU)")


def cmd_scan(args, state: AppState) -> int:
    try:
        client = build_client(state.config)
    except ValueError as e:
        print(f"❌ {e}")
        return 1

    failed = 0
    for image in args.images:
        report = upload_image(state, image, client)
        if not report.ok:
            print(f"❌ {report.source}: {report.error}")
            failed += 1
    print_worklist(state)
    return 1 if failed else 0


def cmd_references(args, state: AppState) -> int:
    for ref in state.references:
        print(f"{ref.code:<6} {ref.description:<40} {ref.value:>5.2f}  {ref.category}")
    print(f"計 {len(state.references)}件")
    return 0


def _add_common_options(parser: argparse.ArgumentParser, default=None, env_default=".env"):
    parser.add_argument('--config', type=str, default=default, help='設定ファイル（YAML）のパス')
    parser.add_argument('--references', type=str, default=default, help='参照テーブルCSV（code, description, value, ...）')
    parser.add_argument('--env-file', type=str, default=env_default, help='環境変数ファイルのパス (デフォルト: .env)')


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="radrvu",
        description="読影ワークリストのスクリーンショットからRVUを集計",
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog="""
使用例:
  radrvu scan worklist.png
  radrvu scan am.png pm.png --rate 42 --consolidate
  radrvu references --references my_rvus.csv
        """
    )
    _add_common_options(parser)

    # サブコマンド側は指定された時だけ上書きする（前に書いた値を None で消さない）
    common = argparse.ArgumentParser(add_help=False)
    _add_common_options(common, default=argparse.SUPPRESS, env_default=argparse.SUPPRESS)

    sub = parser.add_subparsers(dest="command", required=True)

    scan = sub.add_parser("scan", parents=[common], help="画像をスキャンしてワークリストを作成")
    scan.add_argument("images", nargs="+", help="ワークリスト画像")
    scan.add_argument("--rate", type=str, help="換算レート（$ / RVU）")
    scan.add_argument("--consolidate", action="store_true", help="同一検査をまとめて表示")
    scan.set_defaults(func=cmd_scan)

    refs = sub.add_parser("references", parents=[common], help="参照テーブルを表示")
    refs.set_defaults(func=cmd_references)
    return parser


def main(argv: Optional[List[str]] = None) -> int:
    parser = build_parser()
    args = parser.parse_args(argv)

    if os.path.exists(args.env_file):
        load_dotenv(args.env_file)

    try:
        cfg = load_matching_config(args.config)
    except (OSError, ValueError) as e:
        print(f"❌ 設定ファイルを読み込めません: {e}")
        return 1

    state = new_state(cfg)
    if not load_references(state, args.references):
        return 1
    if getattr(args, "rate", None) is not None:
        set_rate(state, args.rate)
    if getattr(args, "consolidate", False):
        state.consolidated = True

    return args.func(args, state)


if __name__ == "__main__":
    sys.exit(main())
