# SPDX-License-Identifier: MIT

import logging

from taskclock import configuration
from taskclock.logging_setup import setup_logging
from taskclock.repository.configuration import CONFIGURATION_REPO

logger = logging.getLogger(__name__)


def initialize() -> None:
    configuration.CONFIG_PATH.mkdir(parents=True, exist_ok=True)
    __ensure_config_file()
    configuration.load_data_path_configuration()
    configuration.DATA_STORE_PATH.mkdir(parents=True, exist_ok=True)

    config = CONFIGURATION_REPO.get_config()
    setup_logging(
        console_level=str(config["log_level"]).upper(),
        log_file=configuration.LOG_FILE_PATH,
    )
    logger.debug("data directory %s", configuration.DATA_PATH)


def __ensure_config_file() -> None:
    if not configuration.APP_CONFIG_PATH.is_file():
        CONFIGURATION_REPO.get_config()
        CONFIGURATION_REPO.is_dirty = True
        CONFIGURATION_REPO.flush()
