from .app_config import AppConfig
from .data_config import DataConfig
from .log_config import LogConfig
from .svm_config import (
    Algorithm,
    KernelType,
    LandmarkSampling,
    MaintenanceStrategy,
    SVMConfig,
)

__all__ = [
    "AppConfig",
    "DataConfig",
    "LogConfig",
    "SVMConfig",
    "Algorithm",
    "KernelType",
    "MaintenanceStrategy",
    "LandmarkSampling",
]
