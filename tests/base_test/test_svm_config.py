import pytest
from pydantic import ValidationError

from budgetsvm.config.svm_config import (
    Algorithm,
    KernelType,
    LandmarkSampling,
    MaintenanceStrategy,
    SVMConfig,
)
from budgetsvm.utils.errors import ConfigurationError, UserInputError
from budgetsvm.utils.reporter import Reporter


def test_defaults():
    cfg = SVMConfig()
    assert cfg.algorithm == Algorithm.BSGD
    assert cfg.kernel == KernelType.GAUSSIAN
    assert cfg.maintenance == MaintenanceStrategy.REMOVAL
    assert cfg.landmark_sampling == LandmarkSampling.RANDOM
    # 核方法强制无 bias
    assert cfg.bias_term == 0.0
    assert not cfg.has_bias


def test_bias_kept_for_linear_algorithms():
    cfg = SVMConfig(algorithm=Algorithm.PEGASOS, bias_term=2.0, dimension=5)
    assert cfg.has_bias
    assert cfg.effective_dimension == 6


@pytest.mark.parametrize("algo", [Algorithm.LLSVM, Algorithm.BSGD])
def test_bias_forced_off_for_kernel_algorithms(algo):
    cfg = SVMConfig(algorithm=algo, bias_term=3.0, dimension=5)
    assert cfg.bias_term == 0.0
    assert cfg.effective_dimension == 5


def test_effective_gamma():
    assert SVMConfig(gamma=0.3).effective_gamma == 0.3
    assert SVMConfig(dimension=4).effective_gamma == pytest.approx(0.25)
    assert SVMConfig().effective_gamma == 0.0
    assert SVMConfig(algorithm=Algorithm.PEGASOS, dimension=3, bias_term=1.0).effective_gamma == pytest.approx(0.25)


@pytest.mark.parametrize(
    "fields",
    [
        {"budget_size": 0},
        {"lambda_param": 0.0},
        {"num_epochs": 0},
        {"gamma": -1.0},
        {"dimension": -2},
        {"kernel": "rbf"},
        {"algorithm": "svm"},
    ],
)
def test_invalid_fields(fields):
    with pytest.raises(ValidationError):
        SVMConfig(**fields)


def test_merging_rules():
    SVMConfig(maintenance=MaintenanceStrategy.MERGING, kernel=KernelType.GAUSSIAN)
    with pytest.raises(ValidationError):
        SVMConfig(maintenance=MaintenanceStrategy.MERGING, kernel=KernelType.POLYNOMIAL)
    with pytest.raises(ValidationError):
        SVMConfig(maintenance=MaintenanceStrategy.MERGING, algorithm=Algorithm.LLSVM)


def test_create_reports_configuration_error():
    fatal = []
    reporter = Reporter(on_message=lambda m: None, on_fatal=fatal.append)
    with pytest.raises(ConfigurationError) as e:
        SVMConfig.create(reporter=reporter, budget_size=0)
    assert "budget_size" in str(e.value)
    assert fatal == [e.value]
    assert isinstance(e.value, UserInputError)


def test_create_returns_config():
    cfg = SVMConfig.create(kernel="linear", budget_size=7)
    assert cfg.kernel == KernelType.LINEAR
    assert cfg.budget_size == 7


@pytest.mark.parametrize("kernel", [KernelType.GAUSSIAN, KernelType.EXPONENTIAL])
def test_rbf_needs_gamma_or_dimension(kernel):
    with pytest.raises(ConfigurationError):
        SVMConfig(kernel=kernel).check_training_setup()
    SVMConfig(kernel=kernel, gamma=0.1).check_training_setup()
    SVMConfig(kernel=kernel, dimension=10).check_training_setup()


def test_non_rbf_needs_nothing():
    SVMConfig(kernel=KernelType.POLYNOMIAL).check_training_setup()
    SVMConfig(algorithm=Algorithm.PEGASOS).check_training_setup()


def test_describe():
    text = SVMConfig(budget_size=12).describe()
    assert "bsgd" in text
    assert "12" in text
    assert "1 / DIMENSIONALITY" in text

    text = SVMConfig(algorithm=Algorithm.LLSVM, landmark_sampling="kmeans").describe()
    assert "kmeans" in text


def test_describe_amm_parameters():
    text = SVMConfig(algorithm=Algorithm.AMM_BATCH, k_param=77, c_param=3.5, num_subepochs=4).describe()
    assert "Pruning frequency k\t\t: 77" in text
    assert "Pruning parameter c\t\t: 3.5" in text
    assert "Number of sub-epochs\t\t: 4" in text

    online = SVMConfig(algorithm=Algorithm.AMM_ONLINE, num_subepochs=4).describe()
    assert "sub-epochs" not in online
    assert "Pruning" not in SVMConfig(algorithm=Algorithm.PEGASOS).describe()
