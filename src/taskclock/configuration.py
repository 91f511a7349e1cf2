# SPDX-License-Identifier: MIT

from pathlib import Path
from typing import Optional, TypedDict

from yaml import load

try:
    from yaml import CLoader as Loader
except ImportError:
    from yaml import Loader  # type: ignore[assignment]
import platformdirs

APP_NAME = "taskclock"

CONFIG_PATH = platformdirs.user_config_path(APP_NAME)
APP_CONFIG_PATH = CONFIG_PATH / "config.yaml"
LOG_PATH = platformdirs.user_log_path(APP_NAME)
LOG_FILE_PATH = LOG_PATH / "taskclock.log"

# These will be set dynamically by load_data_path_configuration()
DATA_PATH: Path = platformdirs.user_data_path(APP_NAME)
DATA_STORE_PATH: Path = DATA_PATH / "store"


class Configuration(TypedDict):
    data_path: Optional[str]
    default_task: Optional[str]
    member_id: Optional[str]
    storage_limit: int
    recent_entries_count: int
    archive_page_size: int
    max_archive_pages: int
    max_checklist_items: int
    max_description_length: int
    log_level: str


def get_default_configuration() -> Configuration:
    return {
        "data_path": None,
        "default_task": None,
        "member_id": None,
        "storage_limit": 4096,
        "recent_entries_count": 10,
        "archive_page_size": 15,
        "max_archive_pages": 20,
        "max_checklist_items": 25,
        "max_description_length": 120,
        "log_level": "WARNING",
    }


def load_data_path_configuration() -> None:
    """
    Load the configuration and set the DATA_PATH variables dynamically.

    This must be called after the config file exists and before any
    store is instantiated.
    """
    global DATA_PATH, DATA_STORE_PATH

    if not APP_CONFIG_PATH.is_file():
        # Config doesn't exist yet, use defaults
        return

    config: Optional[Configuration] = load(APP_CONFIG_PATH.read_text(), Loader=Loader)
    data_path_setting = config.get("data_path") if config else None

    if data_path_setting is not None:
        DATA_PATH = Path(data_path_setting)
        DATA_STORE_PATH = DATA_PATH / "store"
