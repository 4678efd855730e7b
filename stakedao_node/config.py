# stakedao_node/config.py
import copy
import logging
import os
from typing import Any, Dict

import yaml

# -------- Defaults (non-secret) --------
_DEFAULT: Dict[str, Any] = {
    # Parameters used when an organization is initialized without explicit values
    "dao": {
        "issue_price": 1_000_000_000,
        "issue_amount": 100,
        "proposal_fee": 100_000_000,
        "max_supply": 1_000_000,
        "min_quorum": 100,
        "max_expiry": 100_000,
        "min_reputation_for_proposal": 0,
    },
    # Overrides for dao_runtime.params.GOVERNANCE_PARAMS
    "rewards": {},
    "persistence": {
        "enabled": False,
        "state_dir": "data",
        "filename": "dao_state.json",
        "keep_backups": 2,
        # native value held by each vote/proposal record, refunded to the treasury on destroy
        "record_deposit": 0,
    },
    "clock": {"slot_seconds": 0.4},
    "logging": {"level": "INFO", "format": "%(asctime)s [%(levelname)s] %(name)s: %(message)s"},
    "server": {"host": "127.0.0.1", "port": 8000},
}

# -------- ENV secrets / overrides (do NOT bake secrets in YAML) --------
_ENV_MAP = {
    ("persistence", "state_dir"): ("DAO_STATE_DIR", str),
    ("clock", "slot_seconds"): ("DAO_SLOT_SECONDS", float),
    ("logging", "level"): ("DAO_LOG_LEVEL", str),
    ("server", "host"): ("DAO_HOST", str),
    ("server", "port"): ("DAO_PORT", int),
}

CONFIG_FILENAME = "stakedao_config.yaml"


def _deep_merge(base: Dict[str, Any], overlay: Dict[str, Any]) -> Dict[str, Any]:
    out = dict(base)
    for k, v in (overlay or {}).items():
        if isinstance(v, dict) and isinstance(out.get(k), dict):
            out[k] = _deep_merge(out[k], v)
        else:
            out[k] = v
    return out


def _apply_env_overrides(cfg: Dict[str, Any]) -> Dict[str, Any]:
    for (section, key), (env_name, cast) in _ENV_MAP.items():
        val = os.getenv(env_name)
        if val is None:
            continue
        try:
            casted = cast(val)
        except ValueError as exc:
            raise ValueError(f"{env_name}={val!r} is not a valid {cast.__name__}") from exc
        cfg.setdefault(section, {})
        cfg[section][key] = casted
    return cfg


def load_config(repo_root: str) -> Dict[str, Any]:
    """
    Loads the YAML config from repo_root/stakedao_config.yaml.
    Returns defaults if the file doesn't exist.
    Also applies ENV overrides for certain keys.
    """
    path = os.path.join(repo_root, CONFIG_FILENAME)
    cfg = copy.deepcopy(_DEFAULT)

    if os.path.exists(path):
        with open(path, "r", encoding="utf-8") as f:
            data = yaml.safe_load(f) or {}
        if not isinstance(data, dict):
            raise ValueError(f"{path} must contain a mapping at top level")
        cfg = _deep_merge(cfg, data)

    return _apply_env_overrides(cfg)


def default_config() -> Dict[str, Any]:
    return _apply_env_overrides(copy.deepcopy(_DEFAULT))


# -------- Small helpers used by the app --------
def configure_logging(cfg: Dict[str, Any]) -> None:
    section = cfg.get("logging", {})
    level = getattr(logging, str(section.get("level", "INFO")).upper(), logging.INFO)
    logging.basicConfig(level=level, format=section.get("format", _DEFAULT["logging"]["format"]))


def get_bind_host(cfg: Dict[str, Any]) -> str:
    return str(cfg.get("server", {}).get("host", "127.0.0.1"))


def get_bind_port(cfg: Dict[str, Any]) -> int:
    return int(cfg.get("server", {}).get("port", 8000))


def get_node_secret() -> str:
    """
    DAO_NODE_SECRET is intentionally not read from YAML. It seeds every
    organization authority key this node signs with.
    A weak dev fallback is used only if missing.
    """
    return os.getenv("DAO_NODE_SECRET", "dev-only-change-me")
