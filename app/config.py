"""the bridge starts from here."""

from __future__ import annotations

import os
from dataclasses import dataclass

from dotenv import load_dotenv

load_dotenv()


def _branch_refs(*names: str) -> frozenset[str]:
    return frozenset(f"refs/heads/{name}" for name in names if name)


@dataclass(frozen=True)
class Settings:
    """App Settings"""

    db_url: str = os.getenv("DB_URL", "sqlite:///./asana_gitlab.sqlite3")
    base_url: str = os.getenv("BASE_URL", "https://yourdomain.exe")
    env: str = os.getenv("ENV", "dev")
    log_level: str = os.getenv("LOG_LEVEL", "")
    http_timeout: float = float(os.getenv("HTTP_TIMEOUT", "15"))
    timezone: str = os.getenv("TIMEZONE", "UTC")

    # Asana side
    asana_token: str = os.getenv("ASANA_PATOKEN", "")
    asana_api_url: str = os.getenv("ASANA_API_URL", "https://app.asana.com/api/1.0")
    asana_workspace_id: str = os.getenv("ASANA_WORKSPACE_ID", "")
    asana_project_id: str = os.getenv("ASANA_PROJECT_ID", "")
    asana_project_prefix: str = os.getenv("ASANA_PROJECT_PREFIX", "TASK")
    asana_custom_field_name: str = os.getenv("ASANA_CUSTOM_FIELD_NAME", "Progress")

    # GitLab side
    gitlab_token: str = os.getenv("GITLAB_PATOKEN", "")
    gitlab_url: str = os.getenv("GITLAB_URL", "https://gitlab.com")
    gitlab_webhook_secret: str = os.getenv("GITLAB_WEBHOOK_SECRET", "")
    excluded_refs: frozenset[str] = _branch_refs(
        os.getenv("PRODUCTION_BRANCH_NAME", ""),
        os.getenv("STAGING_BRANCH_NAME", ""),
    )

    # Outbound worker queue
    outbound_queue_size: int = int(os.getenv("OUTBOUND_QUEUE_SIZE", "200"))
    outbound_workers: int = int(os.getenv("OUTBOUND_WORKERS", "4"))
    outbound_max_attempts: int = int(os.getenv("OUTBOUND_MAX_ATTEMPTS", "3"))
    outbound_retry_delay: float = float(os.getenv("OUTBOUND_RETRY_DELAY", "1.0"))

    @property
    def is_prod(self) -> bool:
        return self.env.lower() == "prod"


settings = Settings()
