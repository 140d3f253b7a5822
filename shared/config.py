from __future__ import annotations

import json
import logging
from pathlib import Path
from typing import Any, Dict, Optional

from appdirs import user_config_dir

logger = logging.getLogger(__name__)

APP_NAME = "Reviewdesk"
APP_AUTHOR = "Reviewdesk"
CONFIG_DIR = Path(user_config_dir(APP_NAME, APP_AUTHOR))
CONFIG_FILE = CONFIG_DIR / "config.json"

DEFAULT_MAX_UPLOAD_MB = 10
DEFAULT_POLL_INTERVAL_MS = 1000


def _default_cfg() -> Dict[str, Any]:
    return {
        "defaults": {
            "store_root": "",
            "actor": "",
            "role": "librarian",
        },
        "settings": {
            "confirm_on": False,
            "max_upload_mb": DEFAULT_MAX_UPLOAD_MB,
            "poll_interval_ms": DEFAULT_POLL_INTERVAL_MS,
        },
        # keyed by actor identity
        "filters": {},
        "receipts": {},
        "session": {},
    }


def _write(cfg: Dict[str, Any]) -> None:
    CONFIG_FILE.parent.mkdir(parents=True, exist_ok=True)
    CONFIG_FILE.write_text(json.dumps(cfg, indent=2), encoding="utf-8")


def load_config() -> Dict[str, Any]:
    if not CONFIG_FILE.exists():
        cfg = _default_cfg()
        _write(cfg)
        return cfg
    try:
        cfg = json.loads(CONFIG_FILE.read_text(encoding="utf-8"))
        if not isinstance(cfg, dict):
            raise ValueError("config root is not an object")
    except (OSError, ValueError) as e:
        # If corrupt, back up and reset
        logger.warning("Config %s unreadable (%s); resetting", CONFIG_FILE, e)
        backup = CONFIG_FILE.with_suffix(".bak")
        CONFIG_FILE.replace(backup)
        cfg = _default_cfg()
        _write(cfg)
        return cfg
    # fill in sections added after the file was first written
    for key, value in _default_cfg().items():
        if isinstance(value, dict):
            section = cfg.setdefault(key, {})
            for k, v in value.items():
                section.setdefault(k, v)
        else:
            cfg.setdefault(key, value)
    return cfg


def save_config(cfg: Dict[str, Any]) -> None:
    _write(cfg)


def get_defaults() -> Dict[str, str]:
    return load_config()["defaults"]


def remember_defaults(store_root: str, actor: str, role: str) -> None:
    cfg = load_config()
    cfg["defaults"].update({"store_root": store_root, "actor": actor, "role": role})
    save_config(cfg)


def get_setting(name: str) -> Any:
    return load_config()["settings"].get(name)


def set_setting(name: str, value: Any) -> None:
    cfg = load_config()
    cfg["settings"][name] = value
    save_config(cfg)


def max_upload_bytes() -> int:
    mb = get_setting("max_upload_mb") or DEFAULT_MAX_UPLOAD_MB
    return int(float(mb) * 1024 * 1024)


def poll_interval_ms() -> int:
    return int(get_setting("poll_interval_ms") or DEFAULT_POLL_INTERVAL_MS)


# ─────────────────────────────────────────────────────────────────────────────
# Actor-scoped preferences
# ─────────────────────────────────────────────────────────────────────────────
def get_filter_prefs(actor: str) -> Dict[str, str]:
    return dict(load_config()["filters"].get(actor) or {})


def save_filter_prefs(actor: str, prefs: Dict[str, str]) -> None:
    cfg = load_config()
    cfg["filters"][actor] = {k: v for k, v in prefs.items() if v}
    save_config(cfg)


def get_receipts(actor: str) -> Dict[str, bool]:
    return dict(load_config()["receipts"].get(actor) or {})


def mark_receipt(actor: str, filename: str) -> None:
    cfg = load_config()
    cfg["receipts"].setdefault(actor, {})[filename] = True
    save_config(cfg)


def get_session_state(actor: str) -> Dict[str, Optional[str]]:
    return dict(load_config()["session"].get(actor) or {})


def save_session_state(actor: str, selected: Optional[str], notes: Optional[str]) -> None:
    cfg = load_config()
    cfg["session"][actor] = {"selected": selected, "notes": notes}
    save_config(cfg)
