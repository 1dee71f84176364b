from typing import Callable, Dict

from budgetsvm.config.svm_config import Algorithm, SVMConfig
from budgetsvm.training.engines.bsgd_train_engine import BSGDTrainEngine
from budgetsvm.training.engines.model_train_engine import ModelTrainEngine
from budgetsvm.utils.errors import ConfigurationError
from budgetsvm.utils.reporter import Reporter, resolve_reporter

_ENGINE_REGISTRY: Dict[Algorithm, Callable[..., ModelTrainEngine]] = {
    Algorithm.BSGD: lambda cfg, **kwargs: BSGDTrainEngine(cfg, **kwargs),
}


def available_algorithms() -> list:
    return [a.value for a in _ENGINE_REGISTRY]


def resolve_model_train_engine(
        *, cfg: SVMConfig, reporter: Reporter | None = None, **kwargs
) -> ModelTrainEngine:
    key = cfg.algorithm

    if key not in _ENGINE_REGISTRY:
        available = ", ".join(available_algorithms())
        resolve_reporter(reporter).fatal(
            ConfigurationError(f"No ModelTrainEngine for {key.value}. Available: {available}")
        )

    return _ENGINE_REGISTRY[key](cfg, reporter=reporter, **kwargs)
