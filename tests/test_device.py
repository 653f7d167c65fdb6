"""Tests for device attribute collection."""

from __future__ import annotations

import pytest

from telemetry_spool import device as device_module
from telemetry_spool.device import DeviceAttributes


class TestDeviceAttributes:
    def test_collect(self) -> None:
        attrs = DeviceAttributes.collect("python_0.1.0", "2.0")

        assert len(attrs.device_hash) == 128
        int(attrs.device_hash, 16)
        assert attrs.library_version == "python_0.1.0"
        assert attrs.app_version == "2.0"
        assert attrs.platform
        assert attrs.model

    def test_hash_is_stable(self) -> None:
        assert DeviceAttributes.collect("v").device_hash == DeviceAttributes.collect("v").device_hash

    def test_to_dict(self, device: DeviceAttributes) -> None:
        data = device.to_dict()

        assert data["platform"] == "linux"
        assert data["app_version"] == "1.2.3"
        assert set(data) == {
            "device_hash",
            "platform",
            "locale",
            "model",
            "os_version",
            "library_version",
            "app_version",
        }


class TestPlatformLookups:
    @pytest.mark.parametrize(
        ("system", "expected"),
        [("Darwin", "macos"), ("Linux", "linux"), ("Windows", "windows"), ("", "unknown")],
    )
    def test_os_type(self, monkeypatch: pytest.MonkeyPatch, system: str, expected: str) -> None:
        monkeypatch.setattr(device_module.platform, "system", lambda: system)
        assert device_module._get_os_type() == expected

    @pytest.mark.parametrize(
        ("value", "expected"),
        [(("en_US", "UTF-8"), "en"), (("C", None), ""), ((None, None), ""), (("de_DE", "UTF-8"), "de")],
    )
    def test_locale_language(self, monkeypatch: pytest.MonkeyPatch, value, expected: str) -> None:
        monkeypatch.setattr(device_module.locale, "getlocale", lambda: value)
        assert device_module._get_locale_language() == expected

    def test_hostname_failure_falls_back(self, monkeypatch: pytest.MonkeyPatch) -> None:
        def fail() -> str:
            raise OSError("no hostname")

        monkeypatch.setattr(device_module.socket, "gethostname", fail)
        assert device_module._get_hostname() == "unknown-device"
