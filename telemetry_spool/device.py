"""
Device and application attributes reported in upload headers.

Collection is a handful of read-only calls into the platform; every lookup
falls back to a placeholder instead of failing.
"""

from __future__ import annotations

import hashlib
import locale
import platform
import socket
import uuid
from dataclasses import dataclass
from typing import Any


@dataclass(frozen=True)
class DeviceAttributes:
    """Attributes describing the device and the host application."""

    device_hash: str
    platform: str
    locale: str
    model: str
    os_version: str
    library_version: str
    app_version: str = ""

    @classmethod
    def collect(cls, library_version: str, app_version: str = "") -> DeviceAttributes:
        """Read the attributes of the current machine."""
        return cls(
            device_hash=_get_device_hash(),
            platform=_get_os_type(),
            locale=_get_locale_language(),
            model=platform.machine() or "Computer",
            os_version=platform.release() or platform.machine() or "unknown",
            library_version=library_version,
            app_version=app_version,
        )

    def to_dict(self) -> dict[str, Any]:
        """Serialize to dictionary."""
        return {
            "device_hash": self.device_hash,
            "platform": self.platform,
            "locale": self.locale,
            "model": self.model,
            "os_version": self.os_version,
            "library_version": self.library_version,
            "app_version": self.app_version,
        }


def _get_device_hash() -> str:
    """SHA-512 hex digest of a hardware-derived token.

    The raw token never leaves the machine.
    """
    token = f"{uuid.getnode():012x}:{_get_hostname()}"
    return hashlib.sha512(token.encode("utf-8")).hexdigest()


def _get_hostname() -> str:
    try:
        return socket.gethostname()
    except OSError:
        return "unknown-device"


def _get_os_type() -> str:
    """Get the OS type (windows, macos, linux)."""
    system = platform.system().lower()
    if system == "darwin":
        return "macos"
    return system or "unknown"


def _get_locale_language() -> str:
    """Two-letter language code of the current locale, or empty string."""
    try:
        language = locale.getlocale()[0]
    except ValueError:
        return ""
    if not language or language in ("C", "POSIX"):
        return ""
    return language.split("_")[0][:2].lower()
