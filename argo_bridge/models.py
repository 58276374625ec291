"""Typed records for configuration, GitHub and Slack payloads.

Upstream payloads carry many more fields than the bridge reads; every model
keeps them (``extra="allow"``) so handlers can still reach them.
"""
from dataclasses import dataclass
from enum import Enum
from typing import Any, Dict, List, Optional

from pydantic import BaseModel, ConfigDict, Field


class _Record(BaseModel):
    model_config = ConfigDict(extra="allow")


# ---------------------------------------------------------------------------
# Configuration records
# ---------------------------------------------------------------------------


class RepositoryRef(BaseModel):
    model_config = ConfigDict(frozen=True)

    owner: str
    name: str

    @property
    def full_name(self) -> str:
        return f"{self.owner}/{self.name}"

    def __str__(self) -> str:
        return self.full_name


class GitHubSettings(_Record):
    repository: Optional[str] = None


class DeploymentConfig(_Record):
    """One entry of the ``deployments:`` mapping in config.yaml."""

    github: Optional[GitHubSettings] = None

    @property
    def repository(self) -> Optional[str]:
        if self.github and self.github.repository:
            return self.github.repository
        return None

    def with_repository(self, full_name: str) -> "DeploymentConfig":
        github = self.github.model_copy(update={"repository": full_name}) if self.github else GitHubSettings(repository=full_name)
        return self.model_copy(update={"github": github})


@dataclass(frozen=True)
class RosterEntry:
    github_login: str
    slack_id: str


# ---------------------------------------------------------------------------
# GitHub
# ---------------------------------------------------------------------------


class DeploymentState(str, Enum):
    ERROR = "error"
    FAILURE = "failure"
    INACTIVE = "inactive"
    IN_PROGRESS = "in_progress"
    QUEUED = "queued"
    PENDING = "pending"
    SUCCESS = "success"


class GitHubAccount(_Record):
    login: str = ""
    id: Optional[int] = None


class GitHubUser(_Record):
    login: str
    email: Optional[str] = None
    name: Optional[str] = None


class Repository(_Record):
    full_name: str
    name: str = ""
    owner: Optional[GitHubAccount] = None
    html_url: str = ""
    default_branch: Optional[str] = None


class Commit(_Record):
    sha: str
    html_url: str = ""
    commit: Optional[Dict[str, Any]] = None


class PullRequest(_Record):
    id: Optional[int] = None
    number: Optional[int] = None
    url: str = ""
    html_url: str = ""
    user: Optional[GitHubAccount] = None

    @property
    def author_login(self) -> Optional[str]:
        return (self.user.login or None) if self.user else None


class DeploymentRecord(_Record):
    id: int
    sha: str = ""
    ref: str = ""
    environment: str = ""


class DeploymentStatusRecord(_Record):
    id: int
    state: str
    environment: str = ""


class WorkflowRun(_Record):
    id: int
    name: str = ""
    head_sha: str = ""
    event: str = ""
    status: Optional[str] = None
    conclusion: Optional[str] = None
    html_url: str = ""


# ---------------------------------------------------------------------------
# Slack
# ---------------------------------------------------------------------------


class SlackUser(_Record):
    id: str
    name: str = ""
    real_name: Optional[str] = None
    profile: Dict[str, Any] = Field(default_factory=dict)

    @property
    def email(self) -> Optional[str]:
        return self.profile.get("email")


class ChatMessage(_Record):
    ts: str
    thread_ts: Optional[str] = None
    app_id: Optional[str] = None
    text: str = ""

    @property
    def is_thread_root(self) -> bool:
        return bool(self.thread_ts) and self.thread_ts == self.ts

    @property
    def thread_root_ts(self) -> str:
        return self.thread_ts or self.ts


class HistoryPage(_Record):
    ok: bool = False
    messages: List[ChatMessage] = Field(default_factory=list)
    error: Optional[str] = None
    response_metadata: Dict[str, Any] = Field(default_factory=dict)

    @property
    def next_cursor(self) -> str:
        return self.response_metadata.get("next_cursor") or ""


class PostResult(_Record):
    ok: bool = False
    channel: Optional[str] = None
    ts: Optional[str] = None
    error: Optional[str] = None
    message: Optional[Dict[str, Any]] = None


class SlackChannel(_Record):
    id: str


class ConversationResult(_Record):
    ok: bool = False
    channel: Optional[SlackChannel] = None
    error: Optional[str] = None

    @property
    def channel_id(self) -> Optional[str]:
        return self.channel.id if self.channel else None
