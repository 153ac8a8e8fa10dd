import os
from typing import Optional

import yaml

from radrvu.reference_data import DEFAULT_RVU_RATE


DEFAULTS = {
    "rate": {"default": DEFAULT_RVU_RATE},
    "matching": {"max_threshold": 4, "suggestions": 3},
    "extraction": {"default_confidence": 0.5, "model": "gemini-2.5-flash", "timeout": 60},
    "quick_add": {"limit": 6},
    "confidence_bands": {"high": 0.9, "probable": 0.7},
}

# 数値として使う設定項目と型
NUMERIC_KEYS = {
    ("rate", "default"): float,
    ("matching", "max_threshold"): int,
    ("matching", "suggestions"): int,
    ("extraction", "default_confidence"): float,
    ("extraction", "timeout"): int,
    ("quick_add", "limit"): int,
    ("confidence_bands", "high"): float,
    ("confidence_bands", "probable"): float,
}


def _default_path() -> str:
    # 環境変数を毎回参照する（テストでの monkeypatch に追従するため）
    env_path = os.getenv("RADRVU_CONFIG")
    if env_path:
        return env_path
    return os.path.join(os.path.dirname(os.path.dirname(__file__)), "config", "matching.yml")


def _validate(cfg: dict, path: str) -> dict:
    for section in DEFAULTS:
        if not isinstance(cfg.get(section), dict):
            raise ValueError(f"config section '{section}' must be a mapping: {path}")
    for (section, key), cast in NUMERIC_KEYS.items():
        value = cfg[section].get(key)
        # "4" のような文字列は数値に変換、bool は不可
        if isinstance(value, bool):
            raise ValueError(f"config {section}.{key} must be a number, got {value!r}: {path}")
        try:
            cfg[section][key] = cast(value)
        except (TypeError, ValueError) as e:
            raise ValueError(f"config {section}.{key} must be a number, got {value!r}: {path}") from e
    return cfg


def load_matching_config(path: Optional[str] = None) -> dict:
    path = path or _default_path()
    try:
        with open(path, "r", encoding="utf-8") as f:
            cfg = yaml.safe_load(f) or {}
    except FileNotFoundError:
        return {k: dict(v) for k, v in DEFAULTS.items()}
    except yaml.YAMLError as e:
        raise ValueError(f"invalid config {path}: {e}") from e

    if not isinstance(cfg, dict):
        raise ValueError(f"config must be a mapping: {path}")

    # shallow merge defaults
    merged = {k: dict(v) for k, v in DEFAULTS.items()}
    for k, v in cfg.items():
        if isinstance(v, dict) and isinstance(merged.get(k), dict):
            mv = dict(merged[k])
            mv.update(v)
            merged[k] = mv
        else:
            merged[k] = v
    return _validate(merged, path)
