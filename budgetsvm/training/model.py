#!filepath: budgetsvm/training/model.py
from __future__ import annotations

from dataclasses import dataclass, field
from typing import List, Optional

import numpy as np

from budgetsvm.config.svm_config import Algorithm, KernelType, SVMConfig
from budgetsvm.core.budgeted_vector import BudgetedVector
from budgetsvm.core.kernels import KernelEvaluator, KernelRowSource, UserKernel
from budgetsvm.utils.reporter import Reporter, resolve_reporter


@dataclass
class BSGDModel:
    """
    BSGD 模型（纯内存态，不含 I/O）

    - support_vectors : 至多 budget 个支持向量，每个带 len(labels) 个 alpha
    - labels          : 训练时出现的原始标签（顺序 = 类别下标）
    - iterations      : 已处理的样本数 t（继续训练时接着用）
    """

    dimension: int
    chunk_width: int
    labels: List[int] = field(default_factory=list)
    support_vectors: List[BudgetedVector] = field(default_factory=list)

    kernel: KernelType = KernelType.GAUSSIAN
    gamma: float = 0.0
    degree: float = 2.0
    coef: float = 0.0
    bias_term: float = 0.0
    iterations: int = 0
    algorithm: Algorithm = Algorithm.BSGD

    @classmethod
    def from_config(cls, cfg: SVMConfig, chunk_width: int) -> "BSGDModel":
        return cls(
            dimension=cfg.effective_dimension,
            chunk_width=chunk_width,
            kernel=cfg.kernel,
            gamma=cfg.effective_gamma,
            degree=cfg.degree,
            coef=cfg.coef,
            bias_term=cfg.bias_term,
        )

    # --------------------------------------------------
    @property
    def num_classes(self) -> int:
        return len(self.labels)

    @property
    def num_support_vectors(self) -> int:
        return len(self.support_vectors)

    def kernel_evaluator(
        self,
        *,
        user_kernel: Optional[UserKernel] = None,
        reporter: Reporter | None = None,
    ) -> KernelEvaluator:
        gamma = self.gamma
        if gamma == 0.0 and self.dimension:
            gamma = 1.0 / self.dimension
        return KernelEvaluator(
            self.kernel,
            gamma=gamma,
            degree=self.degree,
            coef=self.coef,
            bias_term=self.bias_term,
            user_kernel=user_kernel,
            reporter=reporter,
        )

    # --------------------------------------------------
    # growth
    # --------------------------------------------------
    def set_labels(self, labels: List[int]) -> None:
        """训练集标签表只会在末尾追加。"""
        self.labels = list(labels)
        for sv in self.support_vectors:
            sv.ensure_classes(self.num_classes)

    def extend_dimensionality(self, new_dim: int) -> None:
        if new_dim <= self.dimension:
            return
        for sv in self.support_vectors:
            sv.extend_dimensionality(new_dim, self.bias_term)
        self.dimension = new_dim

    def new_support_vector(
        self, data: KernelRowSource, t: int, *, reporter: Reporter | None = None
    ) -> BudgetedVector:
        sv = BudgetedVector.support_vector(
            self.dimension, self.chunk_width, self.num_classes, reporter=resolve_reporter(reporter)
        )
        sv.vector.create_from_row(data, t, self.bias_term)
        self.support_vectors.append(sv)
        return sv

    # --------------------------------------------------
    # scoring
    # --------------------------------------------------
    def class_scores(self, data: KernelRowSource, t: int, evaluator: KernelEvaluator) -> np.ndarray:
        """f_c(x_t) = Σ_sv alpha_{sv,c} · K(sv, x_t)"""
        scores = np.zeros(self.num_classes, dtype=np.float64)
        if not self.support_vectors:
            return scores
        row_norm = data.squared_norm(t)
        for sv in self.support_vectors:
            k = evaluator.compute_row(sv.vector, data, t, row_norm)
            scores += sv.alphas[: self.num_classes] * k
        return scores
