from __future__ import annotations

import json
import logging
import os
from dataclasses import dataclass
from pathlib import Path
from typing import Mapping, Optional

import streamlit as st

CONFIG_FILE_NAME = "settings.json"
ENV_DATA_DIR = "SEACHAIN_DATA_DIR"
ENV_LOG_LEVEL = "SEACHAIN_LOG_LEVEL"
SESSION_DATA_DIR = "seachain_data_dir"

LOG_FORMAT = "%(asctime)s %(levelname)s %(name)s: %(message)s"


@dataclass(frozen=True)
class Settings:
    data_dir: Path
    db_path: Path
    crate_weight: float = 30.0  # purchase quantity units per crate
    default_unit: str = "lbs"
    log_level: str = "INFO"


def _default_data_dir() -> Path:
    return Path.home() / ".seachain"


def _load_persisted_settings(data_dir: Path) -> dict:
    cfg = data_dir / CONFIG_FILE_NAME
    if not cfg.exists():
        return {}
    try:
        data = json.loads(cfg.read_text(encoding="utf-8"))
    except (OSError, ValueError):
        logging.getLogger(__name__).warning("Ignoring unreadable settings file %s", cfg)
        return {}
    return data if isinstance(data, dict) else {}


def resolve_settings(session_dir: Optional[str], env: Mapping[str, str]) -> Settings:
    # Priority order:
    # 1) Session state (set via Data Management page)
    # 2) Environment variable
    # 3) Persisted settings in default folder
    # 4) Default folder
    default_dir = _default_data_dir()
    persisted = _load_persisted_settings(default_dir)

    if session_dir:
        data_dir = Path(session_dir)
    elif env.get(ENV_DATA_DIR):
        data_dir = Path(env[ENV_DATA_DIR])
    else:
        data_dir = Path(persisted.get("data_dir", default_dir))
    data_dir = data_dir.expanduser().resolve()

    crate_weight = float(persisted.get("crate_weight", 30.0))
    if crate_weight <= 0:
        crate_weight = 30.0

    return Settings(
        data_dir=data_dir,
        db_path=data_dir / "app.db",
        crate_weight=crate_weight,
        default_unit=str(persisted.get("default_unit", "lbs")),
        log_level=str(env.get(ENV_LOG_LEVEL, "INFO")).upper(),
    )


def persist_data_dir(data_dir_str: str) -> None:
    data_dir = Path(data_dir_str).expanduser().resolve()
    data_dir.mkdir(parents=True, exist_ok=True)

    default_dir = _default_data_dir()
    default_dir.mkdir(parents=True, exist_ok=True)
    payload = _load_persisted_settings(default_dir)
    payload["data_dir"] = str(data_dir)
    (default_dir / CONFIG_FILE_NAME).write_text(json.dumps(payload, indent=2), encoding="utf-8")

    # Update session for immediate effect
    st.session_state[SESSION_DATA_DIR] = str(data_dir)


def configure_logging(level: Optional[str] = None) -> None:
    root = logging.getLogger()
    lvl = (level or os.getenv(ENV_LOG_LEVEL, "INFO")).upper()
    if root.handlers:
        root.setLevel(lvl)
        return
    logging.basicConfig(level=lvl, format=LOG_FORMAT)


@st.cache_resource
def get_settings() -> Settings:
    settings = resolve_settings(st.session_state.get(SESSION_DATA_DIR), os.environ)
    settings.data_dir.mkdir(parents=True, exist_ok=True)
    return settings
