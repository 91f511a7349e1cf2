# SPDX-License-Identifier: MIT

from copy import deepcopy
from typing import Any, Optional

from yaml import dump, load

try:
    from yaml import CDumper as Dumper
    from yaml import CLoader as Loader  # noqa: F401
except ImportError:
    from yaml import Dumper, Loader  # type: ignore[assignment]

from taskclock import configuration

INT_FIELDS = {
    "storage_limit",
    "recent_entries_count",
    "archive_page_size",
    "max_archive_pages",
    "max_checklist_items",
    "max_description_length",
}
OPTIONAL_STR_FIELDS = {"data_path", "default_task", "member_id"}
LOG_LEVELS = {"DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"}


class ConfigurationRepository:
    def __init__(self) -> None:
        self._config: Optional[configuration.Configuration] = None
        self.is_dirty = False

    @property
    def config(self) -> configuration.Configuration:
        if self._config is None:
            self.__load_data()
        if self._config is None:
            raise ValueError()
        return self._config

    def __load_data(self) -> None:
        loaded = None
        if configuration.APP_CONFIG_PATH.is_file():
            loaded = load(configuration.APP_CONFIG_PATH.read_text(), Loader=Loader)
        self._config = configuration.get_default_configuration()
        if isinstance(loaded, dict):
            self._config.update(loaded)  # type: ignore[typeddict-item]

        # Fields added after the file was written are back-filled in memory
        # and persisted with the next flush.
        if not isinstance(loaded, dict) or set(self._config) - set(loaded):
            self.is_dirty = True

    def __save_data(self, config: configuration.Configuration) -> None:
        configuration.CONFIG_PATH.mkdir(parents=True, exist_ok=True)
        configuration.APP_CONFIG_PATH.write_text(dump(dict(config), Dumper=Dumper))

    def flush(self) -> None:
        if self._config is not None and self.is_dirty:
            self.__save_data(self._config)
            self.is_dirty = False

    def get_config(self) -> configuration.Configuration:
        return deepcopy(self.config)

    def set_value(self, field: str, value: str) -> None:
        """
        Set one field from its command-line string form. Raises ValueError
        for unknown fields and values that do not parse.
        """
        parsed: Any
        if field in INT_FIELDS:
            parsed = int(value)
            if parsed < (0 if field == "recent_entries_count" else 1):
                raise ValueError(f"{field} must be positive")
        elif field in OPTIONAL_STR_FIELDS:
            parsed = value if value not in ("", "none", "None") else None
        elif field == "log_level":
            parsed = value.upper()
            if parsed not in LOG_LEVELS:
                raise ValueError(f"log_level must be one of {sorted(LOG_LEVELS)}")
        else:
            raise ValueError(f"unknown configuration field {field}")

        self.config[field] = parsed  # type: ignore[literal-required]
        self.is_dirty = True


CONFIGURATION_REPO = ConfigurationRepository()
