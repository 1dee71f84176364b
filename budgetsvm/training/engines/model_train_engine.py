#!filepath: budgetsvm/training/engines/model_train_engine.py
from __future__ import annotations

from abc import ABC, abstractmethod
from typing import Any

from budgetsvm.dataloader.streaming_dataset import StreamingDataset
from budgetsvm.training.engines.train_result import PredictResult, TrainResult
from budgetsvm.utils.reporter import Reporter, resolve_reporter


class ModelTrainEngine(ABC):
    """
    Abstract ModelTrainEngine

    - train()   : 消费一个 StreamingDataset（可多轮 epoch），返回 TrainResult
    - predict() : 在评估模式的 StreamingDataset 上逐 chunk 预测
    """

    def __init__(self, cfg, *, reporter: Reporter | None = None):
        self.cfg = cfg
        self.reporter = resolve_reporter(reporter)

    @abstractmethod
    def train(
        self,
        *,
        data: StreamingDataset,
        prev_model: Any | None = None,
    ) -> TrainResult:
        """
        Returns updated model
        """
        raise NotImplementedError

    @abstractmethod
    def predict(self, *, data: StreamingDataset, model: Any) -> PredictResult:
        raise NotImplementedError
