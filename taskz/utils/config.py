# taskz/utils/config.py
import json
import logging
from pathlib import Path
from typing import Any, Dict, Optional
from .paths import CONFIG_DIR
from taskz.models.types import UserRole

SETTINGS_FILE = CONFIG_DIR / "settings.json"

_DEFAULTS: Dict[str, Any] = {
    "permissions": {
        # roles allowed to delete subtasks
        "delete_subtask_roles": [UserRole.MANAGER.value, UserRole.DIRECTOR.value],
    },
    "activity": {
        # newest entries shown on the detail timeline; null shows all
        "page_size": 200,
    },
}


def _merge(base: Dict[str, Any], override: Dict[str, Any]) -> Dict[str, Any]:
    out = dict(base)
    for k, v in override.items():
        if isinstance(v, dict) and isinstance(out.get(k), dict):
            out[k] = _merge(out[k], v)
        else:
            out[k] = v
    return out


def default_settings() -> Dict[str, Any]:
    return json.loads(json.dumps(_DEFAULTS))


def load_settings(path: Optional[Path] = None) -> Dict[str, Any]:
    p = Path(path) if path is not None else SETTINGS_FILE
    if p.exists():
        try:
            return _merge(default_settings(), json.loads(p.read_text()))
        except (OSError, ValueError):
            logging.getLogger(__name__).warning("Unreadable settings file %s; using defaults", p)
            return default_settings()
    return default_settings()


def save_settings(data: Dict[str, Any], path: Optional[Path] = None) -> None:
    p = Path(path) if path is not None else SETTINGS_FILE
    p.parent.mkdir(parents=True, exist_ok=True)
    p.write_text(json.dumps(data, indent=2))
