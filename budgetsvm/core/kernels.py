"""
Kernel evaluation on ChunkedVector.

Every kernel comes in two overloads:

- vector vs. vector         : ``compute(a, b)``
- vector vs. dataset row    : ``compute_row(a, data, t)`` (the row is never
  materialized, except for the user-defined kernel)

Gaussian and exponential kernels use ||x - y||^2 = ||x||^2 + ||y||^2 - 2 x^T y
with the cached squared norms, so their cost is one sparse dot product.
"""
from __future__ import annotations

import math
from typing import Callable, Optional, Protocol, Tuple

import numpy as np

from budgetsvm.config.svm_config import KernelType, SVMConfig
from budgetsvm.core.chunked_vector import ChunkedVector
from budgetsvm.utils.errors import ConfigurationError, VectorIndexError
from budgetsvm.utils.reporter import Reporter, resolve_reporter


class KernelRowSource(Protocol):
    def row(self, t: int) -> Tuple[np.ndarray, np.ndarray]:
        ...

    def squared_norm(self, t: int) -> float:
        ...


UserKernel = Callable[[ChunkedVector, ChunkedVector, "KernelEvaluator"], float]


# =============================================================================
# pure functions
# =============================================================================

def linear_kernel(a: ChunkedVector, b: ChunkedVector) -> float:
    """Dot product over chunk pairs where both sides are allocated."""
    result = 0.0
    for i in range(min(a.num_chunks, b.num_chunks)):
        ca = a.chunk(i)
        if ca is None:
            continue
        cb = b.chunk(i)
        if cb is None:
            continue
        n = min(len(ca), len(cb))
        result += float(np.dot(ca[:n], cb[:n]))
    return result


def linear_kernel_row(
    a: ChunkedVector,
    data: KernelRowSource,
    t: int,
    bias_term: float = 0.0,
    reporter: Reporter | None = None,
) -> float:
    indices, values = data.row(t)
    result = 0.0
    if len(indices):
        zero_based = np.asarray(indices, dtype=np.int64) - 1
        chunk_ids = zero_based // a.chunk_width
        offsets = zero_based % a.chunk_width

        # 最后一个 chunk 可能比 chunk_width 短，按维度而不是 chunk 数判断
        if int(zero_based.max()) >= a.dimension:
            resolve_reporter(reporter).fatal(
                VectorIndexError(
                    f"input row has feature {int(zero_based.max()) + 1} but the vector has "
                    f"{a.dimension} dimensions; check your input data"
                )
            )

        for ci in np.unique(chunk_ids):
            chunk = a.chunk(int(ci))
            if chunk is None:
                continue
            mask = chunk_ids == ci
            result += float(np.dot(chunk[offsets[mask]], values[mask]))

    if bias_term != 0.0:
        result += a[a.dimension - 1] * bias_term
    return result


def gaussian_from_parts(sqr_a: float, sqr_b: float, dot: float, gamma: float) -> float:
    return math.exp(-0.5 * gamma * (sqr_a + sqr_b - 2.0 * dot))


def exponential_from_parts(sqr_a: float, sqr_b: float, dot: float, gamma: float) -> float:
    radicand = sqr_a + sqr_b - 2.0 * dot
    # 数值下溢导致负数时，核值定义为 0
    if radicand < 0.0:
        return 0.0
    return math.exp(-0.5 * gamma * math.sqrt(radicand))


def polynomial_from_dot(dot: float, degree: float, coef: float) -> float:
    return float((coef + dot) ** degree)


def sigmoid_from_dot(dot: float, degree: float, coef: float) -> float:
    return math.tanh(coef + degree * dot)


# =============================================================================
# evaluator (binds parameters)
# =============================================================================

class KernelEvaluator:
    """
    KernelEvaluator（无状态，只绑定参数）

    - 所有方法都是输入的纯函数，不修改向量
    - 范数缓存是输入（ChunkedVector.sqr_l2_norm / data.squared_norm），不是副作用
    """

    def __init__(
        self,
        kernel: KernelType = KernelType.GAUSSIAN,
        *,
        gamma: float = 1.0,
        degree: float = 2.0,
        coef: float = 0.0,
        bias_term: float = 0.0,
        user_kernel: Optional[UserKernel] = None,
        reporter: Reporter | None = None,
    ):
        self.kernel = KernelType(kernel)
        self.gamma = gamma
        self.degree = degree
        self.coef = coef
        self.bias_term = bias_term
        self.user_kernel = user_kernel
        self.reporter = resolve_reporter(reporter)

    @classmethod
    def from_config(
        cls,
        cfg: SVMConfig,
        *,
        dimension: int | None = None,
        user_kernel: Optional[UserKernel] = None,
        reporter: Reporter | None = None,
    ) -> "KernelEvaluator":
        """
        dimension: 推断出的向量维度（cfg.gamma == 0 且 cfg.dimension == 0 时用于 1/D）
        """
        gamma = cfg.effective_gamma
        if gamma == 0.0 and dimension:
            gamma = 1.0 / dimension
        return cls(
            cfg.kernel,
            gamma=gamma,
            degree=cfg.degree,
            coef=cfg.coef,
            bias_term=cfg.bias_term,
            user_kernel=user_kernel,
            reporter=reporter,
        )

    # --------------------------------------------------
    # vector vs vector
    # --------------------------------------------------
    def linear(self, a: ChunkedVector, b: ChunkedVector) -> float:
        return linear_kernel(a, b)

    def gaussian(self, a: ChunkedVector, b: ChunkedVector) -> float:
        return gaussian_from_parts(a.sqr_l2_norm, b.sqr_l2_norm, linear_kernel(a, b), self.gamma)

    def exponential(self, a: ChunkedVector, b: ChunkedVector) -> float:
        return exponential_from_parts(a.sqr_l2_norm, b.sqr_l2_norm, linear_kernel(a, b), self.gamma)

    def polynomial(self, a: ChunkedVector, b: ChunkedVector) -> float:
        return polynomial_from_dot(linear_kernel(a, b), self.degree, self.coef)

    def sigmoid(self, a: ChunkedVector, b: ChunkedVector) -> float:
        return sigmoid_from_dot(linear_kernel(a, b), self.degree, self.coef)

    def user_defined(self, a: ChunkedVector, b: ChunkedVector) -> float:
        if self.user_kernel is None:
            self.reporter.fatal(
                ConfigurationError(
                    "user-defined kernel selected but no implementation was supplied; "
                    "pass user_kernel=callable(a, b, evaluator) to KernelEvaluator"
                )
            )
        return float(self.user_kernel(a, b, self))

    def compute(self, a: ChunkedVector, b: ChunkedVector) -> float:
        k = self.kernel
        if k == KernelType.GAUSSIAN:
            return self.gaussian(a, b)
        if k == KernelType.EXPONENTIAL:
            return self.exponential(a, b)
        if k == KernelType.SIGMOID:
            return self.sigmoid(a, b)
        if k == KernelType.POLYNOMIAL:
            return self.polynomial(a, b)
        if k == KernelType.LINEAR:
            return self.linear(a, b)
        return self.user_defined(a, b)

    # --------------------------------------------------
    # vector vs dataset row
    # --------------------------------------------------
    def linear_row(self, a: ChunkedVector, data: KernelRowSource, t: int) -> float:
        return linear_kernel_row(a, data, t, self.bias_term, self.reporter)

    def _row_norm(self, data: KernelRowSource, t: int, row_sqr_norm: float | None) -> float:
        return data.squared_norm(t) if row_sqr_norm is None else row_sqr_norm

    def gaussian_row(
        self, a: ChunkedVector, data: KernelRowSource, t: int, row_sqr_norm: float | None = None
    ) -> float:
        return gaussian_from_parts(
            a.sqr_l2_norm, self._row_norm(data, t, row_sqr_norm), self.linear_row(a, data, t), self.gamma
        )

    def exponential_row(
        self, a: ChunkedVector, data: KernelRowSource, t: int, row_sqr_norm: float | None = None
    ) -> float:
        return exponential_from_parts(
            a.sqr_l2_norm, self._row_norm(data, t, row_sqr_norm), self.linear_row(a, data, t), self.gamma
        )

    def polynomial_row(self, a: ChunkedVector, data: KernelRowSource, t: int) -> float:
        return polynomial_from_dot(self.linear_row(a, data, t), self.degree, self.coef)

    def sigmoid_row(self, a: ChunkedVector, data: KernelRowSource, t: int) -> float:
        return sigmoid_from_dot(self.linear_row(a, data, t), self.degree, self.coef)

    def user_defined_row(self, a: ChunkedVector, data: KernelRowSource, t: int) -> float:
        if self.user_kernel is None:
            return self.user_defined(a, a)
        b = ChunkedVector(a.dimension, a.chunk_width, reporter=self.reporter)
        b.create_from_row(data, t, self.bias_term)
        return self.user_defined(a, b)

    def compute_row(
        self, a: ChunkedVector, data: KernelRowSource, t: int, row_sqr_norm: float | None = None
    ) -> float:
        """
        row_sqr_norm: 预先算好的行范数（None 时现算），只有 RBF 类核需要
        """
        k = self.kernel
        if k == KernelType.GAUSSIAN:
            return self.gaussian_row(a, data, t, row_sqr_norm)
        if k == KernelType.EXPONENTIAL:
            return self.exponential_row(a, data, t, row_sqr_norm)
        if k == KernelType.SIGMOID:
            return self.sigmoid_row(a, data, t)
        if k == KernelType.POLYNOMIAL:
            return self.polynomial_row(a, data, t)
        if k == KernelType.LINEAR:
            return self.linear_row(a, data, t)
        return self.user_defined_row(a, data, t)
