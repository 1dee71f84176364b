# budgetsvm/config/svm_config.py
from __future__ import annotations

from enum import Enum
from typing import Optional

from pydantic import BaseModel, Field, ValidationError, model_validator

from budgetsvm.utils.errors import ConfigurationError
from budgetsvm.utils.reporter import Reporter, resolve_reporter


class Algorithm(str, Enum):
    PEGASOS = "pegasos"
    AMM_BATCH = "amm_batch"
    AMM_ONLINE = "amm_online"
    LLSVM = "llsvm"
    BSGD = "bsgd"


class KernelType(str, Enum):
    GAUSSIAN = "gaussian"
    EXPONENTIAL = "exponential"
    POLYNOMIAL = "polynomial"
    LINEAR = "linear"
    SIGMOID = "sigmoid"
    USER_DEFINED = "user_defined"


class MaintenanceStrategy(str, Enum):
    REMOVAL = "removal"
    MERGING = "merging"


class LandmarkSampling(str, Enum):
    RANDOM = "random"
    KMEANS = "kmeans"
    KMEDOIDS = "kmedoids"


KERNEL_ALGORITHMS = (Algorithm.LLSVM, Algorithm.BSGD)
RBF_KERNELS = (KernelType.GAUSSIAN, KernelType.EXPONENTIAL)


class SVMConfig(BaseModel):
    """
    SVMConfig（训练参数对象）

    Semantics:
    - dimension == 0  -> 维度在加载数据时推断
    - gamma == 0      -> 使用 1 / effective_dimension
    - LLSVM / BSGD 不使用 bias（校验时强制为 0）
    - 所有组合校验在训练开始前完成
    """

    algorithm: Algorithm = Algorithm.BSGD
    dimension: int = Field(default=0, ge=0)
    budget_size: int = Field(default=50, ge=1)
    lambda_param: float = Field(default=1e-4, gt=0.0)
    bias_term: float = 1.0

    # epochs
    num_epochs: int = Field(default=5, ge=1)
    # 以下三项只服务于 AMM 系算法：目前没有注册对应引擎，仅由 describe() 展示
    num_subepochs: int = Field(default=1, ge=1)

    # AMM pruning
    k_param: int = Field(default=10000, ge=1)
    c_param: float = Field(default=10.0, ge=0.0)

    # kernel
    kernel: KernelType = KernelType.GAUSSIAN
    gamma: float = Field(default=0.0, ge=0.0)
    degree: float = Field(default=2.0, gt=0.0)
    coef: float = 0.0

    # maintenance / sampling
    maintenance: MaintenanceStrategy = MaintenanceStrategy.REMOVAL
    landmark_sampling: LandmarkSampling = LandmarkSampling.RANDOM

    # misc
    randomize: bool = True
    seed: Optional[int] = None
    verbose: bool = False
    output_scores: bool = False

    @model_validator(mode="after")
    def _check_combinations(self) -> "SVMConfig":
        if self.maintenance == MaintenanceStrategy.MERGING:
            if self.algorithm == Algorithm.LLSVM:
                raise ValueError(
                    "merging maintenance is not available for LLSVM; "
                    "use landmark_sampling (random / kmeans / kmedoids)"
                )
            if self.kernel != KernelType.GAUSSIAN:
                raise ValueError(
                    f"merging maintenance requires the gaussian kernel, got {self.kernel.value}"
                )

        # no bias term for kernel algorithms
        if self.algorithm in KERNEL_ALGORITHMS:
            self.bias_term = 0.0

        return self

    # --------------------------------------------------
    # derived
    # --------------------------------------------------
    @property
    def has_bias(self) -> bool:
        return self.bias_term != 0.0

    @property
    def effective_dimension(self) -> int:
        """Vector dimensionality including the trailing bias coordinate."""
        if self.dimension == 0:
            return 0
        return self.dimension + 1 if self.has_bias else self.dimension

    @property
    def effective_gamma(self) -> float:
        if self.gamma != 0.0:
            return self.gamma
        if self.effective_dimension == 0:
            return 0.0
        return 1.0 / self.effective_dimension

    # --------------------------------------------------
    @classmethod
    def create(cls, *, reporter: Reporter | None = None, **fields) -> "SVMConfig":
        """
        构造 + 校验，校验失败统一走 reporter.fatal(ConfigurationError)
        """
        reporter = resolve_reporter(reporter)
        try:
            return cls(**fields)
        except ValidationError as e:
            reporter.fatal(ConfigurationError(_format_validation_error(e)))

    def check_training_setup(self, reporter: Reporter | None = None) -> None:
        """
        训练开始前的最后一道校验（数据尚未读取）

        RBF 核宽度默认 1/dimension，两者都未设置时无法确定核函数。
        """
        reporter = resolve_reporter(reporter)
        if (
            self.algorithm in KERNEL_ALGORITHMS
            and self.kernel in RBF_KERNELS
            and self.gamma == 0.0
            and self.dimension == 0
        ):
            reporter.fatal(
                ConfigurationError("RBF kernel in use, set either gamma or dimension")
            )

    def describe(self) -> str:
        lines = [f"Algorithm\t\t\t: {self.algorithm.value}"]
        if self.algorithm in KERNEL_ALGORITHMS:
            if self.algorithm == Algorithm.BSGD:
                lines.append(f"Number of epochs\t\t: {self.num_epochs}")
                lines.append(f"Maintenance strategy\t\t: {self.maintenance.value}")
                lines.append(f"Size of the budget\t\t: {self.budget_size}")
            else:
                lines.append(f"Landmark sampling\t\t: {self.landmark_sampling.value}")
                lines.append(f"Number of landmark points\t: {self.budget_size}")
            lines.append(f"Lambda regularization param.\t: {self.lambda_param}")
            lines.append(f"Kernel\t\t\t\t: {self.kernel.value}")
            if self.kernel in RBF_KERNELS:
                width = f"{self.gamma}" if self.gamma else "1 / DIMENSIONALITY"
                lines.append(f"Kernel width gamma\t\t: {width}")
        else:
            lines.append(f"Lambda parameter\t\t: {self.lambda_param}")
            lines.append(f"Bias term\t\t\t: {self.bias_term}")
            if self.algorithm != Algorithm.PEGASOS:
                lines.append(f"Pruning frequency k\t\t: {self.k_param}")
                lines.append(f"Pruning parameter c\t\t: {self.c_param}")
                lines.append(f"Max num. of weights per class\t: {self.budget_size}")
                lines.append(f"Number of epochs\t\t: {self.num_epochs}")
                if self.algorithm == Algorithm.AMM_BATCH:
                    lines.append(f"Number of sub-epochs\t\t: {self.num_subepochs}")
        return "\n".join(lines)


def _format_validation_error(e: ValidationError) -> str:
    parts = []
    for err in e.errors():
        loc = ".".join(str(x) for x in err.get("loc", ())) or "config"
        parts.append(f"{loc}: {err.get('msg')}")
    return "; ".join(parts)
