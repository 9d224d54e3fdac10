"""Persistence backends for domain filter settings."""

from __future__ import annotations

import logging
import os
import tempfile
from typing import Any, Dict, Optional

import yaml
from pydantic import ValidationError

from ..errors import SettingsStoreError
from .policy import FilterSettings

logger = logging.getLogger(__name__)


class SettingsStore:
    """Base class for filter settings persistence.

    Brief:
      Subclasses implement load()/save(). Any failure must surface as
      SettingsStoreError so callers can apply their own fallback.
    """

    def load(self) -> FilterSettings:
        raise NotImplementedError("SettingsStore.load() must be implemented by a subclass")

    def save(self, settings: FilterSettings) -> None:
        raise NotImplementedError("SettingsStore.save() must be implemented by a subclass")


class MemorySettingsStore(SettingsStore):
    """Process-local store; mostly useful for tests and embedding."""

    def __init__(self, settings: Optional[FilterSettings] = None) -> None:
        self._data: Dict[str, Any] = (settings or FilterSettings()).model_dump(
            mode="json"
        )
        self.saves = 0

    def load(self) -> FilterSettings:
        return FilterSettings.model_validate(self._data)

    def save(self, settings: FilterSettings) -> None:
        self._data = settings.model_dump(mode="json")
        self.saves += 1


class YamlSettingsStore(SettingsStore):
    """
    Store filter settings in a small YAML file.

    Inputs (constructor):
        path: File path; "~" is expanded. A missing file loads as defaults.

    File layout:
        domain_filter:
          mode: whitelist
          whitelist: [example.com, "*.example.org"]
          blacklist: []

    A file without the ``domain_filter`` wrapper is accepted as the bare
    mapping.
    """

    _SECTION = "domain_filter"

    def __init__(self, path: str) -> None:
        self.path = os.path.abspath(os.path.expanduser(str(path)))

    def load(self) -> FilterSettings:
        if not os.path.exists(self.path):
            logger.debug("No filter settings at %s; using defaults", self.path)
            return FilterSettings()
        try:
            with open(self.path, "r", encoding="utf-8") as fh:
                data = yaml.safe_load(fh) or {}
        except (OSError, UnicodeDecodeError, yaml.YAMLError) as exc:
            raise SettingsStoreError(f"cannot read {self.path}: {exc}") from exc

        if not isinstance(data, dict):
            raise SettingsStoreError(f"{self.path}: expected a mapping")
        section = data.get(self._SECTION, data)
        if section is None:
            section = {}
        try:
            return FilterSettings.model_validate(section)
        except ValidationError as exc:
            raise SettingsStoreError(f"{self.path}: invalid settings: {exc}") from exc

    def save(self, settings: FilterSettings) -> None:
        payload = {self._SECTION: settings.model_dump(mode="json")}
        directory = os.path.dirname(self.path) or "."
        try:
            os.makedirs(directory, exist_ok=True)
            fd, tmp_path = tempfile.mkstemp(prefix=".filter-", dir=directory)
            try:
                with os.fdopen(fd, "w", encoding="utf-8") as fh:
                    yaml.safe_dump(payload, fh, sort_keys=False)
                os.replace(tmp_path, self.path)
            except BaseException:
                if os.path.exists(tmp_path):
                    os.unlink(tmp_path)
                raise
        except OSError as exc:
            raise SettingsStoreError(f"cannot write {self.path}: {exc}") from exc
        logger.info("Saved domain filter settings to %s", self.path)
