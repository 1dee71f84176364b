#!filepath: budgetsvm/training/maintenance.py
from __future__ import annotations

import math
from dataclasses import dataclass
from enum import Enum
from typing import Callable, List, MutableSequence, Optional, Tuple

import numpy as np

from budgetsvm.config.svm_config import Algorithm, KernelType, MaintenanceStrategy, SVMConfig
from budgetsvm.core.budgeted_vector import BudgetedVector, VectorKind
from budgetsvm.core.kernels import KernelEvaluator
from budgetsvm.utils.errors import ConfigurationError
from budgetsvm.utils.reporter import Reporter, resolve_reporter

_INV_PHI = (math.sqrt(5.0) - 1.0) / 2.0  # 0.618...

ScoreFn = Callable[[BudgetedVector], float]


class MaintenanceState(str, Enum):
    UNDER_BUDGET = "under_budget"   # size <= B
    AT_CAPACITY = "at_capacity"     # size == B + 1，恰好一步
    OVER_BUDGET = "over_budget"     # size > B + 1，调用方一次加了多个


@dataclass(frozen=True)
class MaintenanceEvent:
    """
    一次维护动作

    removal: removed = 被删元素下标（删之前的下标），kept = None
    merge  : kept 被原地更新，removed 被删（下标都是合并前的）
    """

    strategy: MaintenanceStrategy
    removed: int
    kept: Optional[int] = None
    k_max: Optional[float] = None
    cost: float = 0.0


# =============================================================================
# merging math（Gaussian kernel）
# =============================================================================

def merged_alphas(alpha_a: np.ndarray, alpha_b: np.ndarray, k: float, h: float) -> np.ndarray:
    """
    z = h·a + (1-h)·b 时，K(z, a) = k^((1-h)^2)，K(z, b) = k^(h^2)
    """
    return alpha_a * k ** ((1.0 - h) ** 2) + alpha_b * k ** (h * h)


def compute_k_max(
    alpha_a: np.ndarray,
    alpha_b: np.ndarray,
    k: float,
    *,
    tol: float = 1e-6,
    max_iter: int = 100,
) -> float:
    """
    黄金分割搜索 h ∈ [0, 1]，使 ||alpha_z(h)||^2 最大
    """

    def objective(h: float) -> float:
        z = merged_alphas(alpha_a, alpha_b, k, h)
        return float(np.dot(z, z))

    lo, hi = 0.0, 1.0
    x1 = hi - _INV_PHI * (hi - lo)
    x2 = lo + _INV_PHI * (hi - lo)
    f1, f2 = objective(x1), objective(x2)

    for _ in range(max_iter):
        if hi - lo < tol:
            break
        if f1 < f2:
            lo, x1, f1 = x1, x2, f2
            x2 = lo + _INV_PHI * (hi - lo)
            f2 = objective(x2)
        else:
            hi, x2, f2 = x2, x1, f1
            x1 = hi - _INV_PHI * (hi - lo)
            f1 = objective(x1)

    return 0.5 * (lo + hi)


def merge_degradation(
    alpha_a: np.ndarray, alpha_b: np.ndarray, k: float, alpha_z: np.ndarray
) -> float:
    """||α_a||² + ||α_b||² + 2k<α_a, α_b> − ||α_z||²"""
    return float(
        np.dot(alpha_a, alpha_a)
        + np.dot(alpha_b, alpha_b)
        + 2.0 * k * np.dot(alpha_a, alpha_b)
        - np.dot(alpha_z, alpha_z)
    )


# =============================================================================
# maintainer
# =============================================================================

def default_score(vec: BudgetedVector) -> float:
    """
    有用性：支持向量 -> ||alpha||；权重 -> degradation · ||w||
    """
    if vec.kind == VectorKind.SUPPORT_VECTOR:
        return vec.alpha_norm()
    if vec.kind == VectorKind.WEIGHT:
        return vec.degradation * math.sqrt(vec.vector.sqr_l2_norm)
    raise ConfigurationError("landmark points need an algorithm-supplied usefulness score")


class BudgetMaintainer:
    """
    BudgetMaintainer（无状态，仅持有 budget + strategy）

    maintain() 返回后 working set 大小 <= budget。
    """

    def __init__(
        self,
        budget: int,
        strategy: MaintenanceStrategy = MaintenanceStrategy.REMOVAL,
        *,
        kernel: Optional[KernelEvaluator] = None,
        reporter: Reporter | None = None,
    ):
        self.reporter = resolve_reporter(reporter)
        if budget < 1:
            self.reporter.fatal(ConfigurationError(f"budget must be >= 1, got {budget}"))

        self.budget = budget
        self.strategy = MaintenanceStrategy(strategy)
        self.kernel = kernel

        if self.strategy == MaintenanceStrategy.MERGING:
            if kernel is None or kernel.kernel != KernelType.GAUSSIAN:
                got = "none" if kernel is None else kernel.kernel.value
                self.reporter.fatal(
                    ConfigurationError(f"merging maintenance requires the gaussian kernel, got {got}")
                )

    @classmethod
    def from_config(
        cls,
        cfg: SVMConfig,
        *,
        kernel: Optional[KernelEvaluator] = None,
        reporter: Reporter | None = None,
    ) -> "BudgetMaintainer":
        reporter = resolve_reporter(reporter)
        if cfg.maintenance == MaintenanceStrategy.MERGING and cfg.algorithm == Algorithm.LLSVM:
            reporter.fatal(
                ConfigurationError("merging maintenance is not available for LLSVM landmark points")
            )
        return cls(cfg.budget_size, cfg.maintenance, kernel=kernel, reporter=reporter)

    # --------------------------------------------------
    def state(self, size: int) -> MaintenanceState:
        if size <= self.budget:
            return MaintenanceState.UNDER_BUDGET
        if size == self.budget + 1:
            return MaintenanceState.AT_CAPACITY
        return MaintenanceState.OVER_BUDGET

    def maintain(
        self,
        working_set: MutableSequence[BudgetedVector],
        score: Optional[ScoreFn] = None,
    ) -> List[MaintenanceEvent]:
        """
        while size > budget: 执行一步 removal / merge
        """
        events: List[MaintenanceEvent] = []
        while self.state(len(working_set)) != MaintenanceState.UNDER_BUDGET:
            if self.strategy == MaintenanceStrategy.MERGING:
                events.append(self._merge_step(working_set))
            else:
                events.append(self._removal_step(working_set, score))
        return events

    # --------------------------------------------------
    # removal
    # --------------------------------------------------
    def _removal_step(
        self, working_set: MutableSequence[BudgetedVector], score: Optional[ScoreFn]
    ) -> MaintenanceEvent:
        if score is None:
            if any(v.kind == VectorKind.LANDMARK for v in working_set):
                self.reporter.fatal(
                    ConfigurationError("landmark points need an algorithm-supplied usefulness score")
                )
            score = default_score

        best_idx, best_score = 0, math.inf
        for i, vec in enumerate(working_set):
            s = score(vec)
            # 严格小于：并列时保留最小下标
            if s < best_score:
                best_idx, best_score = i, s

        del working_set[best_idx]
        return MaintenanceEvent(MaintenanceStrategy.REMOVAL, removed=best_idx, cost=float(best_score))

    # --------------------------------------------------
    # merging
    # --------------------------------------------------
    def best_merge_pair(
        self, working_set: MutableSequence[BudgetedVector]
    ) -> Tuple[int, int, float, np.ndarray, float]:
        """
        遍历所有无序对，返回 (i, j, k_max, alpha_z, degradation)，并列取字典序最小的 (i, j)
        """
        for v in working_set:
            if v.kind != VectorKind.SUPPORT_VECTOR:
                self.reporter.fatal(
                    ConfigurationError(f"merging is only defined for support vectors, got {v.kind.value}")
                )

        n_classes = max(v.num_classes for v in working_set)
        for v in working_set:
            v.ensure_classes(n_classes)

        best: Optional[Tuple[int, int, float, np.ndarray, float]] = None
        for i in range(len(working_set)):
            a = working_set[i]
            for j in range(i + 1, len(working_set)):
                b = working_set[j]
                k = self.kernel.compute(a.vector, b.vector)
                h = compute_k_max(a.alphas, b.alphas, k)
                alpha_z = merged_alphas(a.alphas, b.alphas, k, h)
                cost = merge_degradation(a.alphas, b.alphas, k, alpha_z)
                if best is None or cost < best[4]:
                    best = (i, j, h, alpha_z, cost)
        return best

    def _merge_step(self, working_set: MutableSequence[BudgetedVector]) -> MaintenanceEvent:
        i, j, k_max, alpha_z, cost = self.best_merge_pair(working_set)
        working_set[i].merge_with(working_set[j], k_max, alpha_z)
        del working_set[j]
        return MaintenanceEvent(
            MaintenanceStrategy.MERGING, removed=j, kept=i, k_max=k_max, cost=cost
        )
