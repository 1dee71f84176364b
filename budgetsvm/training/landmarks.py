#!filepath: budgetsvm/training/landmarks.py
"""
Landmark selection for the low-rank (LLSVM) family.

Landmarks are picked from the currently loaded chunk:

- random   : uniform sample without replacement
- kmeans   : scikit-learn KMeans centroids on the chunk's CSR matrix
- kmedoids : alternating assign / medoid-update using row-to-row distances
"""
from __future__ import annotations

from typing import List, Optional

import numpy as np
from sklearn.cluster import KMeans

from budgetsvm.config.svm_config import LandmarkSampling
from budgetsvm.core.budgeted_vector import BudgetedVector
from budgetsvm.dataloader.streaming_dataset import StreamingDataset
from budgetsvm.utils.errors import ConfigurationError
from budgetsvm.utils.reporter import Reporter, resolve_reporter


def _landmarks_from_rows(
    data: StreamingDataset, rows, dimension: int, chunk_width: int, reporter: Reporter
) -> List[BudgetedVector]:
    out = []
    for t in rows:
        lm = BudgetedVector.landmark(dimension, chunk_width, reporter=reporter)
        lm.vector.create_from_row(data, int(t))
        out.append(lm)
    return out


def random_rows(data: StreamingDataset, k: int, rng: np.random.Generator) -> np.ndarray:
    return rng.choice(data.num_rows, size=k, replace=False)


def kmedoids_rows(
    data: StreamingDataset,
    k: int,
    rng: np.random.Generator,
    *,
    max_iter: int = 20,
) -> np.ndarray:
    """
    k-medoids（交替：分配到最近 medoid -> 每簇取距离和最小的成员）
    """
    n = data.num_rows
    medoids = rng.choice(n, size=k, replace=False)

    for _ in range(max_iter):
        # assign
        assign = np.empty(n, dtype=np.int64)
        for t in range(n):
            dists = [data.pairwise_distance(t, int(m)) for m in medoids]
            assign[t] = int(np.argmin(dists))

        # update
        new_medoids = medoids.copy()
        for c in range(k):
            members = np.flatnonzero(assign == c)
            if len(members) == 0:
                continue
            costs = [
                sum(data.pairwise_distance(int(p), int(q)) for q in members)
                for p in members
            ]
            new_medoids[c] = members[int(np.argmin(costs))]

        if np.array_equal(np.sort(new_medoids), np.sort(medoids)):
            medoids = new_medoids
            break
        medoids = new_medoids

    return medoids


def select_landmarks(
    data: StreamingDataset,
    budget: int,
    strategy: LandmarkSampling = LandmarkSampling.RANDOM,
    *,
    dimension: Optional[int] = None,
    chunk_width: int = 1000,
    seed: Optional[int] = None,
    max_iter: int = 20,
    reporter: Reporter | None = None,
) -> List[BudgetedVector]:
    """
    从当前 chunk 选出至多 budget 个 landmark（BudgetedVector, kind=LANDMARK）

    dimension: landmark 向量维度，默认 data.dimension_highest_seen
    """
    reporter = resolve_reporter(reporter)
    strategy = LandmarkSampling(strategy)
    if budget < 1:
        reporter.fatal(ConfigurationError(f"number of landmarks must be >= 1, got {budget}"))
    if data.num_rows == 0:
        reporter.fatal(ConfigurationError("cannot select landmarks from an empty chunk"))

    dimension = dimension or data.dimension_highest_seen
    k = min(budget, data.num_rows)
    if k < budget:
        reporter.warning(
            f"only {data.num_rows} rows loaded, using {k} landmark points instead of {budget}"
        )

    rng = np.random.default_rng(seed)

    if strategy == LandmarkSampling.RANDOM:
        rows = random_rows(data, k, rng)
        return _landmarks_from_rows(data, rows, dimension, chunk_width, reporter)

    if strategy == LandmarkSampling.KMEDOIDS:
        rows = kmedoids_rows(data, k, rng, max_iter=max_iter)
        return _landmarks_from_rows(data, rows, dimension, chunk_width, reporter)

    # kmeans
    km = KMeans(n_clusters=k, n_init=1, max_iter=max_iter, random_state=seed)
    km.fit(data.to_csr(dimension))
    out = []
    for center in km.cluster_centers_:
        lm = BudgetedVector.landmark(dimension, chunk_width, reporter=reporter)
        lm.vector.create_from_dense(center)
        out.append(lm)
    reporter.info(f"k-means landmarks: inertia={km.inertia_:.6g}, iterations={km.n_iter_}")
    return out
