import csv
import os
from dataclasses import dataclass
from pathlib import Path
from typing import Dict, List, Optional

import yaml
from dotenv import load_dotenv

from .logging_utils import StructuredLogger, logger as default_logger
from .models import DeploymentConfig, RosterEntry

GITHUB_API = "https://api.github.com"
SLACK_API = "https://slack.com/api"

# Ref: https://api.slack.com/apps/A01PE453YDP
DEFAULT_SLACK_APP_ID = "A01PE453YDP"


@dataclass
class BridgeConfig:
    bridge_token: str = ""
    github_token: str = ""
    github_org: str = ""
    github_api_url: str = GITHUB_API
    slack_token: str = ""
    slack_app_id: str = DEFAULT_SLACK_APP_ID
    slack_api_url: str = SLACK_API
    deployment_notifications_channel_id: str = ""
    argocd_notifications_channel_id: str = ""
    deployments_file: str = "config.yaml"
    users_file: str = "users.csv"
    log_level: str = "debug"
    json_logging: bool = True
    log_body: bool = False
    http_timeout: float = 15.0


def _env_any(*names: str) -> Optional[str]:
    """Return first non-empty environment variable value from given names."""
    for n in names:
        v = os.getenv(n)
        if v and str(v).strip():
            return str(v).strip()
    return None


def _env_flag(name: str, default: str) -> bool:
    return (os.getenv(name, default) or "").strip().lower() == "true"


def _env_float(name: str, default: float) -> float:
    raw = _env_any(name)
    if raw is None:
        return default
    try:
        return float(raw)
    except ValueError:
        return default


def load_config_from_env(dotenv: bool = True) -> BridgeConfig:
    # Load .env if present (local dev).
    if dotenv:
        load_dotenv()
    return BridgeConfig(
        bridge_token=os.getenv("ARGO_BRIDGE_TOKEN", ""),
        github_token=_env_any("GITHUB_TOKEN") or "",
        github_org=_env_any("GITHUB_ORG_NAME") or "",
        github_api_url=(_env_any("GITHUB_API_URL") or GITHUB_API).rstrip("/"),
        slack_token=_env_any("SLACK_TOKEN") or "",
        slack_app_id=_env_any("SLACK_APP_ID") or DEFAULT_SLACK_APP_ID,
        slack_api_url=(_env_any("SLACK_API_URL") or SLACK_API).rstrip("/"),
        deployment_notifications_channel_id=_env_any("DEPLOYMENT_NOTIFICATIONS_CHANNEL_ID") or "",
        argocd_notifications_channel_id=_env_any("P_ARGOCD_NOTIFICATIONS_CHANNEL_ID") or "",
        deployments_file=_env_any("ARGO_BRIDGE_CONFIG_FILE") or "config.yaml",
        users_file=_env_any("ARGO_BRIDGE_USERS_FILE") or "users.csv",
        log_level=_env_any("ARGO_BRIDGE_LOGGING_LEVEL") or "debug",
        json_logging=_env_flag("ARGO_BRIDGE_JSON_LOGGING", "true"),
        log_body=_env_flag("ARGO_BRIDGE_LOG_BODY", "false"),
        http_timeout=_env_float("ARGO_BRIDGE_HTTP_TIMEOUT", 15.0),
    )


def mask_token(t: str) -> str:
    if not t or len(t) < 8:
        return "***"
    return "..." + t[-4:]


def load_deployment_config(path: str, log: Optional[StructuredLogger] = None) -> Dict[str, DeploymentConfig]:
    """Load the ``deployments:`` mapping from a YAML configuration file.

    A deployment listed without a body (``my-service:``) is kept as an empty
    record so it still counts as configured.
    """
    log = log or default_logger
    p = Path(path)
    if not p.exists():
        log.warn("deployment config not found, starting with no configured deployments", path=str(p))
        return {}

    data = yaml.safe_load(p.read_text(encoding="utf-8")) or {}
    if not isinstance(data, dict):
        raise ValueError(f"Invalid deployment config (expected a mapping): {p}")
    deployments = data.get("deployments") or {}
    if not isinstance(deployments, dict):
        raise ValueError(f"Invalid deployment config ('deployments' must be a mapping): {p}")

    out: Dict[str, DeploymentConfig] = {}
    for name, entry in deployments.items():
        out[str(name)] = DeploymentConfig.model_validate(entry or {})
    log.debug("loaded deployment config", path=str(p), deployments=len(out))
    return out


def load_user_roster(path: str, log: Optional[StructuredLogger] = None) -> List[RosterEntry]:
    """Load the GitHub login -> Slack id roster from a CSV file with a header row."""
    log = log or default_logger
    p = Path(path)
    if not p.exists():
        log.warn("user roster not found, starting with an empty roster", path=str(p))
        return []

    with open(p, newline="", encoding="utf-8-sig") as f:
        reader = csv.DictReader(f)
        missing = {"github_login", "slack_id"} - set(reader.fieldnames or [])
        if missing:
            raise ValueError(f"User roster {p} is missing columns: {', '.join(sorted(missing))}")
        roster = [
            RosterEntry(github_login=(row.get("github_login") or "").strip(), slack_id=(row.get("slack_id") or "").strip())
            for row in reader
        ]
    log.debug("loaded user roster", path=str(p), users=len(roster))
    return roster
