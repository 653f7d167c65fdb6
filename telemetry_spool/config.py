"""
Client configuration.

Configuration can be provided directly, via environment variables, or via a
YAML settings file.

Environment Variables:
    TELEMETRY_SPOOL_APP_KEY: Application key (if not passed explicitly)
    TELEMETRY_SPOOL_STORAGE_PATH: Spool directory
    TELEMETRY_SPOOL_BASE_URL: Analytics endpoint base URL
    TELEMETRY_SPOOL_MAX_STORED_SESSIONS: Cap on unrotated session logs
    TELEMETRY_SPOOL_APP_VERSION: Host application version
    TELEMETRY_SPOOL_UPLOAD_TIMEOUT: Upload timeout in seconds

YAML file:

```yaml
telemetry:
  app_key: "abc"
  storage_path: "~/.myapp/telemetry"
  base_url: "https://analytics.example.com/api/v2/applications"
  max_stored_sessions: 10
  app_version: "1.4.2"
```
"""

from __future__ import annotations

import os
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any

import yaml

DEFAULT_BASE_URL = "http://analytics.localytics.com/api/v2/applications"
DEFAULT_MAX_STORED_SESSIONS = 10
DEFAULT_MAX_NAME_LENGTH = 100
DEFAULT_UPLOAD_TIMEOUT = 30.0
DEFAULT_CONTENT_TYPE = "application/x-ndjson"
LIBRARY_VERSION = "python_0.1.0"


@dataclass
class TelemetryConfig:
    """Configuration for a telemetry client.

    Attributes:
        app_key: Key identifying the application at the analytics endpoint
        storage_path: Spool directory. Defaults to ~/.telemetry_spool/{app_key}
        base_url: Endpoint base; uploads go to {base_url}/{app_key}/uploads
        max_stored_sessions: Opening a session is refused once this many
            unrotated session logs exist
        max_name_length: Event names are truncated to this length
        library_version: Reported in the upload header as "lv"
        app_version: Reported in the upload header as "av"
        upload_timeout: Total timeout for one upload request, in seconds
        content_type: Content type of the upload request body
    """

    app_key: str
    storage_path: str | None = None
    base_url: str = DEFAULT_BASE_URL
    max_stored_sessions: int = DEFAULT_MAX_STORED_SESSIONS
    max_name_length: int = DEFAULT_MAX_NAME_LENGTH
    library_version: str = LIBRARY_VERSION
    app_version: str = ""
    upload_timeout: float = DEFAULT_UPLOAD_TIMEOUT
    content_type: str = DEFAULT_CONTENT_TYPE

    # Additional options
    options: dict[str, Any] = field(default_factory=dict)

    def __post_init__(self) -> None:
        if not self.app_key:
            raise ValueError("app_key must not be empty")
        if self.max_stored_sessions < 1:
            raise ValueError("max_stored_sessions must be at least 1")
        if self.max_name_length < 1:
            raise ValueError("max_name_length must be at least 1")
        if self.upload_timeout <= 0:
            raise ValueError("upload_timeout must be positive")

    @property
    def upload_url(self) -> str:
        """Full URL the pipeline posts to."""
        return f"{self.base_url.rstrip('/')}/{self.app_key}/uploads"

    @property
    def resolved_storage_path(self) -> Path:
        """Spool directory with ``~`` expanded and the default applied."""
        if self.storage_path:
            return Path(self.storage_path).expanduser()
        return Path.home() / ".telemetry_spool" / self.app_key

    @classmethod
    def from_environment(cls, app_key: str | None = None) -> TelemetryConfig:
        """Create configuration from environment variables.

        Args:
            app_key: Application key. Falls back to TELEMETRY_SPOOL_APP_KEY.

        Returns:
            TelemetryConfig populated from environment variables
        """
        return cls(
            app_key=app_key or os.environ.get("TELEMETRY_SPOOL_APP_KEY", ""),
            storage_path=os.environ.get("TELEMETRY_SPOOL_STORAGE_PATH"),
            base_url=os.environ.get("TELEMETRY_SPOOL_BASE_URL", DEFAULT_BASE_URL),
            max_stored_sessions=int(
                os.environ.get(
                    "TELEMETRY_SPOOL_MAX_STORED_SESSIONS", str(DEFAULT_MAX_STORED_SESSIONS)
                )
            ),
            app_version=os.environ.get("TELEMETRY_SPOOL_APP_VERSION", ""),
            upload_timeout=float(
                os.environ.get("TELEMETRY_SPOOL_UPLOAD_TIMEOUT", str(DEFAULT_UPLOAD_TIMEOUT))
            ),
        )

    @classmethod
    def from_yaml(cls, path: Path, app_key: str | None = None) -> TelemetryConfig:
        """Create configuration from the ``telemetry`` section of a YAML file.

        Unknown keys are kept in ``options``. An explicit ``app_key`` argument
        wins over the file.
        """
        content = Path(path).read_text(encoding="utf-8")
        data = yaml.safe_load(content) or {}
        section: dict[str, Any] = dict(data.get("telemetry") or {})

        known = {
            "app_key",
            "storage_path",
            "base_url",
            "max_stored_sessions",
            "max_name_length",
            "library_version",
            "app_version",
            "upload_timeout",
            "content_type",
        }
        kwargs = {key: value for key, value in section.items() if key in known}
        options = {key: value for key, value in section.items() if key not in known}

        if app_key:
            kwargs["app_key"] = app_key
        kwargs.setdefault("app_key", "")

        return cls(**kwargs, options=options)
