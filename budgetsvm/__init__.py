#!filepath: budgetsvm/__init__.py

from .utils.logger import Logging, init_logging, logs
from .utils.reporter import Reporter
from .config.app_config import AppConfig

__version__ = "0.1.0"

__all__ = [
    "logs", "Logging", "init_logging",
    "Reporter",
    "AppConfig",
    "__version__",
]
