#!filepath: budgetsvm/config/data_config.py
from typing import Optional

from pydantic import BaseModel, Field


class DataConfig(BaseModel):
    # 每个 chunk 读取的样本数（-z）
    chunk_size: int = Field(default=50000, ge=1)
    # 向量每个 chunk 的维度宽度（-w）
    chunk_width: int = Field(default=1000, ge=1)
    # None -> 系统临时目录
    assignments_dir: Optional[str] = None
