"""Project-level configuration and path helpers."""

import os
from dataclasses import dataclass
from pathlib import Path
from typing import Union

PROJECT_ROOT = Path(__file__).resolve().parent.parent
LOGS_DIR = PROJECT_ROOT / "logs"
DEFAULT_LOG_PATH = LOGS_DIR / "app.log"

# The notification store is an in-memory mock unless DATABASE_URL says otherwise
DEFAULT_DB_PATH = ":memory:"

LOGS_DIR.mkdir(parents=True, exist_ok=True)


PathLike = Union[str, Path]


def resolve_db_path(env_value: PathLike | None = None) -> PathLike:
    """Resolve DATABASE_URL to an absolute path."""
    if not env_value:
        return DEFAULT_DB_PATH

    if str(env_value) == ":memory:":
        return ":memory:"

    candidate = Path(env_value)
    return candidate if candidate.is_absolute() else PROJECT_ROOT / candidate


def _env_float(name: str, default: float) -> float:
    value = os.getenv(name)
    return float(value) if value else default


def _env_int(name: str, default: int) -> int:
    value = os.getenv(name)
    return int(value) if value else default


def _env_bool(name: str, default: bool) -> bool:
    value = os.getenv(name)
    if value is None or value == "":
        return default
    return value.strip().lower() in ("1", "true", "yes", "on")


@dataclass(frozen=True)
class PortalSite:
    """Addresses of the patient portal pages the reconciler visits."""

    base_url: str = "https://megaegyptlabresult.gts-sys.com"
    login_path: str = "/Patient/Login"
    notifications_path: str = "/Patient/Notification"
    read_all_path: str = "/Notification?Area=Configuration"
    visit_path: str = "/Patient/Visit"

    @classmethod
    def from_env(cls) -> "PortalSite":
        base_url = os.getenv("PORTAL_BASE_URL")
        if base_url:
            return cls(base_url=base_url.rstrip("/"))
        return cls()

    @property
    def login_url(self) -> str:
        return f"{self.base_url}{self.login_path}"

    @property
    def notifications_url(self) -> str:
        return f"{self.base_url}{self.notifications_path}"

    @property
    def read_all_url(self) -> str:
        return f"{self.base_url}{self.read_all_path}"

    def visit_url(self, visit_id: str) -> str:
        """Detail page of a single visit; opening it marks the visit seen."""
        return f"{self.base_url}{self.visit_path}?VisitId={visit_id}"


@dataclass(frozen=True)
class ReconcilerConfig:
    """Timeouts and bounds for reconciliation passes."""

    login_timeout_seconds: float = 60.0
    step_timeout_seconds: float = 60.0
    acknowledge_timeout_seconds: float = 15.0
    max_acknowledgements: int = 5
    acknowledge_concurrency: int = 2
    max_concurrent_accounts: int = 1
    batch_timeout_seconds: float = 600.0
    settle_delay_ms: int = 3000
    headless: bool = True

    @classmethod
    def from_env(cls) -> "ReconcilerConfig":
        return cls(
            login_timeout_seconds=_env_float("PORTAL_LOGIN_TIMEOUT", 60.0),
            step_timeout_seconds=_env_float("PORTAL_STEP_TIMEOUT", 60.0),
            acknowledge_timeout_seconds=_env_float("PORTAL_ACK_TIMEOUT", 15.0),
            max_acknowledgements=_env_int("PORTAL_MAX_ACKNOWLEDGEMENTS", 5),
            acknowledge_concurrency=_env_int("PORTAL_ACK_CONCURRENCY", 2),
            max_concurrent_accounts=_env_int("PORTAL_MAX_CONCURRENCY", 1),
            batch_timeout_seconds=_env_float("RECONCILE_BATCH_TIMEOUT", 600.0),
            settle_delay_ms=_env_int("PORTAL_SETTLE_DELAY_MS", 3000),
            headless=_env_bool("PORTAL_HEADLESS", True),
        )


@dataclass(frozen=True)
class PushConfig:
    """Expo push relay settings."""

    endpoint: str = "https://exp.host/--/api/v2/push/send"
    token_prefix: str = "ExponentPushToken"
    channel_id: str = "results"
    timeout_seconds: float = 10.0

    @classmethod
    def from_env(cls) -> "PushConfig":
        return cls(
            endpoint=os.getenv("PUSH_ENDPOINT", cls.endpoint),
            token_prefix=os.getenv("PUSH_TOKEN_PREFIX", cls.token_prefix),
            timeout_seconds=_env_float("PUSH_TIMEOUT", cls.timeout_seconds),
        )
