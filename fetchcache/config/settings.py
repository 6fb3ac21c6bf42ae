from __future__ import annotations

from pathlib import Path
from typing import Any, TypedDict

from yarl import URL

from fetchcache.config import (
    CONNECTION_LIMIT,
    DEFAULT_MAX_ENTRIES,
    DEFAULT_USER_AGENT,
    MAX_IMAGE_BYTES,
    REQUEST_TIMEOUT,
    RESOURCE_TIMEOUT,
)
from fetchcache.utils import json_load, json_save


class SettingsFile(TypedDict):
    # 0 disables the entry bound
    max_entries: int
    request_timeout: float
    resource_timeout: float
    connection_limit: int
    max_image_bytes: int
    proxy: URL
    user_agent: str


default_settings: SettingsFile = {
    "max_entries": DEFAULT_MAX_ENTRIES,
    "request_timeout": REQUEST_TIMEOUT.total_seconds(),
    "resource_timeout": RESOURCE_TIMEOUT.total_seconds(),
    "connection_limit": CONNECTION_LIMIT,
    "max_image_bytes": MAX_IMAGE_BYTES,
    "proxy": URL(),
    "user_agent": DEFAULT_USER_AGENT,
}


class Settings:
    max_entries: int
    request_timeout: float
    resource_timeout: float
    connection_limit: int
    max_image_bytes: int
    proxy: URL
    user_agent: str

    PASSTHROUGH = ("_settings", "_path", "_altered")

    def __init__(self, path: Path | None = None, **overrides: Any):
        self._path: Path | None = path
        self._settings: SettingsFile
        if path is not None:
            self._settings = json_load(path, default_settings)
        else:
            self._settings = default_settings.copy()
        self._altered: bool = False
        for name, value in overrides.items():
            setattr(self, name, value)

    # explicit overrides land in the settings dict, the file is only read once
    def __getattr__(self, name: str, /) -> Any:
        if name in self.PASSTHROUGH:
            # passthrough
            return getattr(super(), name)
        elif name in self._settings:
            return self._settings[name]  # type: ignore[literal-required]
        return getattr(super(), name)

    def __setattr__(self, name: str, value: Any, /) -> None:
        if name in self.PASSTHROUGH:
            # passthrough
            return super().__setattr__(name, value)
        elif name == "proxy":
            self._settings["proxy"] = value if isinstance(value, URL) else URL(value or "")
            self._altered = True
            return
        elif name in self._settings:
            self._settings[name] = value  # type: ignore[literal-required]
            self._altered = True
            return
        raise TypeError(f"{name} is not a known setting")

    def __delattr__(self, name: str, /) -> None:
        raise RuntimeError("settings can't be deleted")

    @property
    def altered(self) -> bool:
        return self._altered

    def alter(self) -> None:
        self._altered = True

    def save(self, *, force: bool = False, path: Path | None = None) -> None:
        if path is not None:
            self._path = path
        if self._path is None:
            raise RuntimeError("Settings have no file to be saved to")
        if self._altered or force:
            json_save(self._path, self._settings, sort=True)
            self._altered = False
