import os

from services.common.core.logging_config import setup_logging as common_setup_logging


def setup_logging(config_path: str = ""):
    """
    Load the YAML config and initialize logging.
    """
    config_path = config_path or os.getenv("LOG_CONFIG_PATH", "")
    if not config_path:
        from ..config import config

        config_path = config.LOG_CONFIG_PATH
    common_setup_logging(config_path)
