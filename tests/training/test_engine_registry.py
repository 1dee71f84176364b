import pytest

from budgetsvm.config.svm_config import Algorithm, SVMConfig
from budgetsvm.training.engines import (
    BSGDTrainEngine,
    ModelTrainEngine,
    available_algorithms,
    resolve_model_train_engine,
)
from budgetsvm.utils.errors import ConfigurationError
from budgetsvm.utils.reporter import Reporter


def test_resolve_bsgd():
    cfg = SVMConfig(algorithm=Algorithm.BSGD, gamma=0.1)
    engine = resolve_model_train_engine(cfg=cfg, chunk_width=16)
    assert isinstance(engine, BSGDTrainEngine)
    assert isinstance(engine, ModelTrainEngine)
    assert engine.cfg is cfg
    assert engine.chunk_width == 16


def test_resolve_passes_reporter():
    reporter = Reporter(verbose=False)
    engine = resolve_model_train_engine(cfg=SVMConfig(), reporter=reporter)
    assert engine.reporter is reporter


@pytest.mark.parametrize("algo", [Algorithm.PEGASOS, Algorithm.AMM_BATCH, Algorithm.LLSVM])
def test_unregistered_algorithm_is_fatal(algo):
    fatal = []
    reporter = Reporter(on_message=lambda m: None, on_fatal=fatal.append)
    with pytest.raises(ConfigurationError) as e:
        resolve_model_train_engine(cfg=SVMConfig(algorithm=algo), reporter=reporter)
    assert "Available: bsgd" in str(e.value)
    assert fatal == [e.value]


def test_available_algorithms():
    assert available_algorithms() == ["bsgd"]


def test_engine_is_abstract():
    with pytest.raises(TypeError):
        ModelTrainEngine(SVMConfig())
