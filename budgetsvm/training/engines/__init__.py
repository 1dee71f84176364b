"""
Model Train Engines

Each engine defines COMPLETE training semantics for one algorithm:

- train(data=...)          consumes a StreamingDataset chunk by chunk
- predict(data=, model=)   scores an evaluation-mode StreamingDataset

Engines are resolved by algorithm through ``resolve_model_train_engine``.
"""
from .bsgd_train_engine import BSGDTrainEngine
from .model_train_engine import ModelTrainEngine
from .registry import available_algorithms, resolve_model_train_engine
from .train_result import PredictResult, TrainResult

__all__ = [
    "ModelTrainEngine",
    "BSGDTrainEngine",
    "TrainResult",
    "PredictResult",
    "resolve_model_train_engine",
    "available_algorithms",
]
