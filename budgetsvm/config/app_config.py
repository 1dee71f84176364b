#!filepath: budgetsvm/config/app_config.py
import os

import yaml
from dotenv import load_dotenv
from pydantic import BaseModel, Field

from .log_config import LogConfig
from .data_config import DataConfig
from .svm_config import SVMConfig


def package_root() -> str:
    """
    返回包根目录（基于当前文件位置推导）:
    budgetsvm/config/app_config.py → budgetsvm/config → budgetsvm
    """
    return os.path.abspath(os.path.join(os.path.dirname(__file__), ".."))


# 环境变量覆盖（.env 或进程环境）
_ENV_OVERRIDES = {
    "BUDGETSVM_LOG_LEVEL": ("log", "level"),
    "BUDGETSVM_LOG_DIR": ("log", "dir"),
    "BUDGETSVM_ASSIGNMENTS_DIR": ("data", "assignments_dir"),
}


class AppConfig(BaseModel):
    log: LogConfig = Field(default_factory=LogConfig)
    data: DataConfig = Field(default_factory=DataConfig)
    svm: SVMConfig = Field(default_factory=SVMConfig)

    @classmethod
    def load(cls, path: str | None = None) -> "AppConfig":
        """
        加载 YAML 配置 + .env
        - 默认使用 budgetsvm/config/base.yml
        - 不依赖当前工作目录
        """
        # 1) 先加载 .env（当前工作目录，找不到则忽略；不覆盖已有环境变量）
        load_dotenv(os.path.join(os.getcwd(), ".env"))

        # 2) 决定配置文件路径
        if path is None:
            path = os.path.join(package_root(), "config", "base.yml")

        if not os.path.exists(path):
            raise FileNotFoundError(f"Config file not found: {path}")

        # 3) 读取 YAML
        with open(path, "r", encoding="utf-8") as f:
            raw = yaml.safe_load(f) or {}

        # 4) env 覆盖
        for env_name, (section, key) in _ENV_OVERRIDES.items():
            value = os.getenv(env_name)
            if value:
                raw.setdefault(section, {})[key] = value

        return cls(**raw)
