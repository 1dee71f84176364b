# budgetsvm/core/budgeted_vector.py
from __future__ import annotations

from dataclasses import dataclass, field
from enum import Enum
from typing import Optional

import numpy as np

from budgetsvm.core.chunked_vector import ChunkedVector
from budgetsvm.utils.errors import ConfigurationError
from budgetsvm.utils.reporter import Reporter


class VectorKind(str, Enum):
    WEIGHT = "weight"                  # AMM / Pegasos 权重（degradation 标量）
    SUPPORT_VECTOR = "support_vector"  # BSGD 支持向量（每类一个 alpha）
    LANDMARK = "landmark"              # LLSVM landmark（无附加量）


@dataclass
class BudgetedVector:
    """
    BudgetedVector（tagged variant，不用继承）

    - vector       : 独占的 ChunkedVector
    - kind         : 决定哪些附加量有效
    - degradation  : 仅 WEIGHT
    - alphas       : 仅 SUPPORT_VECTOR，长度 == 类别数
    """

    vector: ChunkedVector
    kind: VectorKind
    degradation: float = 1.0
    alphas: Optional[np.ndarray] = field(default=None)

    # --------------------------------------------------
    # factories
    # --------------------------------------------------
    @classmethod
    def weight(
        cls,
        dimension: int,
        chunk_width: int,
        *,
        degradation: float = 1.0,
        reporter: Reporter | None = None,
    ) -> "BudgetedVector":
        return cls(
            vector=ChunkedVector(dimension, chunk_width, reporter=reporter),
            kind=VectorKind.WEIGHT,
            degradation=degradation,
        )

    @classmethod
    def support_vector(
        cls,
        dimension: int,
        chunk_width: int,
        num_classes: int,
        *,
        reporter: Reporter | None = None,
    ) -> "BudgetedVector":
        return cls(
            vector=ChunkedVector(dimension, chunk_width, reporter=reporter),
            kind=VectorKind.SUPPORT_VECTOR,
            alphas=np.zeros(num_classes, dtype=np.float64),
        )

    @classmethod
    def landmark(
        cls,
        dimension: int,
        chunk_width: int,
        *,
        reporter: Reporter | None = None,
    ) -> "BudgetedVector":
        return cls(
            vector=ChunkedVector(dimension, chunk_width, reporter=reporter),
            kind=VectorKind.LANDMARK,
        )

    # --------------------------------------------------
    # payload helpers
    # --------------------------------------------------
    def _require(self, kind: VectorKind, op: str) -> None:
        if self.kind != kind:
            self.vector.reporter.fatal(
                ConfigurationError(f"{op}() is only defined for {kind.value} vectors, got {self.kind.value}")
            )

    @property
    def num_classes(self) -> int:
        return 0 if self.alphas is None else int(self.alphas.shape[0])

    def ensure_classes(self, num_classes: int) -> None:
        """训练中出现新类别时，把 alphas 补 0 到 num_classes。"""
        self._require(VectorKind.SUPPORT_VECTOR, "ensure_classes")
        missing = num_classes - self.num_classes
        if missing > 0:
            self.alphas = np.concatenate([self.alphas, np.zeros(missing, dtype=np.float64)])

    def alpha_norm(self) -> float:
        self._require(VectorKind.SUPPORT_VECTOR, "alpha_norm")
        return float(np.sqrt(np.dot(self.alphas, self.alphas)))

    def downgrade(self, iteration: int) -> None:
        """
        每次迭代把附加量推向 0：乘以 (1 - 1/iteration)
        """
        factor = 1.0 - 1.0 / float(iteration)
        if self.kind == VectorKind.SUPPORT_VECTOR:
            self.alphas *= factor
        elif self.kind == VectorKind.WEIGHT:
            self.degradation *= factor
        else:
            self._require(VectorKind.SUPPORT_VECTOR, "downgrade")

    def merge_with(self, other: "BudgetedVector", k_max: float, merged_alphas: np.ndarray) -> None:
        """
        合并：self <- k_max * self + (1 - k_max) * other，alphas 由调用方按核函数算好。
        合并后 other 不再需要，由持有者删除。
        """
        self._require(VectorKind.SUPPORT_VECTOR, "merge_with")
        self.vector.combine(other.vector, k_max)
        self.alphas = np.asarray(merged_alphas, dtype=np.float64).copy()

    def extend_dimensionality(self, new_dim: int, bias_term: float = 0.0) -> None:
        self.vector.extend_dimensionality(new_dim, bias_term)

    @property
    def dimension(self) -> int:
        return self.vector.dimension
