from dataclasses import dataclass
from typing import Any, Dict

import numpy as np


@dataclass(frozen=True)
class TrainResult:
    """
    TrainResult

    语义：
    - 一次完整训练的纯内存态结果
    - 不包含任何 I/O 语义（保存见 model_io）
    """
    model: Any
    metrics: Dict[str, Any]


@dataclass(frozen=True)
class PredictResult:
    """
    labels     : 预测的原始标签
    scores     : 获胜类别的得分
    error_rate : 错误率（未见过的测试标签一律算错）
    """
    labels: np.ndarray
    scores: np.ndarray
    error_rate: float

    @property
    def num_examples(self) -> int:
        return int(self.labels.shape[0])
