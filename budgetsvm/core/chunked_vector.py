#!filepath: budgetsvm/core/chunked_vector.py
from __future__ import annotations

from typing import Iterator, List, Optional, Protocol, Sequence, Tuple

import numpy as np

from budgetsvm.utils.errors import VectorIndexError
from budgetsvm.utils.reporter import Reporter, resolve_reporter


class RowSource(Protocol):
    """任何能按行给出 (1-based indices, values) 稀疏切片的数据源。"""

    def row(self, t: int) -> Tuple[np.ndarray, np.ndarray]:
        ...


def chunk_count(dimension: int, chunk_width: int) -> int:
    if dimension <= 0:
        return 0
    return (dimension - 1) // chunk_width + 1


def last_chunk_length(dimension: int, chunk_width: int) -> int:
    rest = dimension % chunk_width
    return chunk_width if rest == 0 else rest


class ChunkedVector:
    """
    ChunkedVector（分块稀疏向量）

    存储：
      - 维度 D 被切成宽度 W 的 chunk，最后一个 chunk 逻辑长度为 D % W（整除时为 W）
      - chunk 为 None 表示整块全 0，不分配内存
      - 第一次写入时才分配（zero-fill）

    不变量：
      - D 只增不减，扩展保留所有已有值（包括末尾 bias 坐标，会被挪到新的末尾）
      - sqr_l2_norm 缓存与内容保持一致（所有写操作都会维护）
      - 读写越界 -> VectorIndexError（经 reporter.fatal）
    """

    __slots__ = ("_dimension", "_chunk_width", "_chunks", "_sqr_norm", "_reporter")

    def __init__(
        self,
        dimension: int,
        chunk_width: int,
        *,
        reporter: Reporter | None = None,
    ):
        self._reporter = resolve_reporter(reporter)
        if chunk_width < 1:
            self._reporter.fatal(
                VectorIndexError(f"chunk width must be positive, got {chunk_width}")
            )
        if dimension < 0:
            self._reporter.fatal(
                VectorIndexError(f"dimension must be non-negative, got {dimension}")
            )

        self._dimension = dimension
        self._chunk_width = chunk_width
        self._chunks: List[Optional[np.ndarray]] = [None] * chunk_count(dimension, chunk_width)
        self._sqr_norm = 0.0

    # --------------------------------------------------
    # shape
    # --------------------------------------------------
    @property
    def dimension(self) -> int:
        return self._dimension

    @property
    def chunk_width(self) -> int:
        return self._chunk_width

    @property
    def reporter(self) -> Reporter:
        return self._reporter

    @property
    def num_chunks(self) -> int:
        return len(self._chunks)

    @property
    def allocated_chunks(self) -> int:
        return sum(1 for c in self._chunks if c is not None)

    def chunk(self, i: int) -> Optional[np.ndarray]:
        """第 i 个 chunk 的只读视图（None 表示全 0）。"""
        c = self._chunks[i]
        if c is None:
            return None
        view = c.view()
        view.flags.writeable = False
        return view

    def __len__(self) -> int:
        return self._dimension

    # --------------------------------------------------
    # norm cache
    # --------------------------------------------------
    @property
    def sqr_l2_norm(self) -> float:
        return self._sqr_norm

    def restore_sqr_norm(self, value: float) -> None:
        """
        直接写入范数缓存。

        仅用于从可信的序列化形式重建向量（值与范数都来自同一次保存）；
        其他情况请用 recompute_sqr_norm()。
        """
        self._sqr_norm = float(value)

    def recompute_sqr_norm(self) -> float:
        self._sqr_norm = self.squared_norm()
        return self._sqr_norm

    def squared_norm(self) -> float:
        total = 0.0
        for c in self._chunks:
            if c is not None:
                total += float(np.dot(c, c))
        return total

    # --------------------------------------------------
    # element access
    # --------------------------------------------------
    def _locate(self, index: int) -> Tuple[int, int]:
        if index < 0 or index >= self._dimension:
            self._reporter.fatal(
                VectorIndexError(
                    f"index {index} out of range for vector of dimension {self._dimension}; "
                    "check that the input data does not exceed the model dimensionality"
                )
            )
        return index // self._chunk_width, index % self._chunk_width

    def __getitem__(self, index: int) -> float:
        ci, offset = self._locate(index)
        c = self._chunks[ci]
        if c is None:
            return 0.0
        return float(c[offset])

    def __setitem__(self, index: int, value: float) -> None:
        ci, offset = self._locate(index)
        c = self._chunks[ci]
        if c is None:
            if value == 0.0:
                return
            c = self._allocate(ci)
        old = float(c[offset])
        value = float(value)
        c[offset] = value
        self._sqr_norm += value * value - old * old

    def _chunk_length(self, ci: int) -> int:
        if ci == len(self._chunks) - 1:
            return last_chunk_length(self._dimension, self._chunk_width)
        return self._chunk_width

    def _allocate(self, ci: int) -> np.ndarray:
        c = np.zeros(self._chunk_length(ci), dtype=np.float64)
        self._chunks[ci] = c
        return c

    def clear(self) -> None:
        self._chunks = [None] * len(self._chunks)
        self._sqr_norm = 0.0

    # --------------------------------------------------
    # dimensionality
    # --------------------------------------------------
    def extend_dimensionality(self, new_dim: int, bias_term: float = 0.0) -> None:
        """
        把向量扩展到 new_dim 维。

        - new_dim < D 为致命错误
        - chunk 数不变：只加长最后一个 chunk（补 0）
        - chunk 数增加：最后一个 chunk 补齐到 W，再追加 None chunk
        - bias_term != 0：旧的末尾坐标视为 bias，扩展后写到新的末尾
        """
        if new_dim < self._dimension:
            self._reporter.fatal(
                VectorIndexError(
                    f"cannot shrink vector from {self._dimension} to {new_dim} dimensions"
                )
            )
        if new_dim == self._dimension:
            return

        has_bias = bias_term != 0.0 and self._dimension > 0
        bias_value = self[self._dimension - 1] if has_bias else 0.0
        norm = self._sqr_norm

        old_count = len(self._chunks)
        new_count = chunk_count(new_dim, self._chunk_width)

        if old_count > 0 and self._chunks[-1] is not None:
            old_last = self._chunks[-1]
            keep = len(old_last) - (1 if has_bias else 0)
            new_len = (
                last_chunk_length(new_dim, self._chunk_width)
                if new_count == old_count
                else self._chunk_width
            )
            widened = np.zeros(new_len, dtype=np.float64)
            widened[:keep] = old_last[:keep]
            self._chunks[-1] = widened

        self._chunks.extend([None] * (new_count - old_count))
        self._dimension = new_dim

        if has_bias and bias_value != 0.0:
            ci, offset = self._locate(new_dim - 1)
            c = self._chunks[ci]
            if c is None:
                c = self._allocate(ci)
            c[offset] = bias_value

        # 扩展只移动数值，不改变范数
        self._sqr_norm = norm

    # --------------------------------------------------
    # construction helpers
    # --------------------------------------------------
    def create_from_row(self, data: RowSource, t: int, bias_term: float = 0.0) -> None:
        """
        用数据集第 t 行初始化（先清空），增量累计范数；
        bias_term != 0 时写入最后一个坐标。
        """
        self.clear()
        indices, values = data.row(t)
        for idx, val in zip(indices, values):
            if val == 0.0:
                continue
            self[int(idx) - 1] = float(val)

        if bias_term != 0.0:
            self[self._dimension - 1] = bias_term

    def create_from_dense(self, values: Sequence[float]) -> None:
        """用稠密数组初始化（例如 k-means 中心作为 landmark）。"""
        values = np.asarray(values, dtype=np.float64)
        if values.shape[0] > self._dimension:
            self._reporter.fatal(
                VectorIndexError(
                    f"dense input of length {values.shape[0]} exceeds dimension {self._dimension}"
                )
            )
        self.clear()
        for idx in np.flatnonzero(values):
            self[int(idx)] = float(values[idx])

    def combine(self, other: "ChunkedVector", k: float) -> None:
        """
        原地合并：self <- k * self + (1 - k) * other
        """
        self._check_compatible(other)
        for ci, (mine, theirs) in enumerate(zip(self._chunks, other._chunks)):
            if mine is None and theirs is None:
                continue
            merged = np.zeros(self._chunk_length(ci), dtype=np.float64)
            if mine is not None:
                merged += k * mine
            if theirs is not None:
                merged += (1.0 - k) * theirs
            self._chunks[ci] = merged
        self.recompute_sqr_norm()

    def copy(self) -> "ChunkedVector":
        clone = ChunkedVector(self._dimension, self._chunk_width, reporter=self._reporter)
        clone._chunks = [None if c is None else c.copy() for c in self._chunks]
        clone._sqr_norm = self._sqr_norm
        return clone

    def _check_compatible(self, other: "ChunkedVector") -> None:
        if other._dimension != self._dimension or other._chunk_width != self._chunk_width:
            self._reporter.fatal(
                VectorIndexError(
                    f"vector shapes differ: ({self._dimension}, w={self._chunk_width}) "
                    f"vs ({other._dimension}, w={other._chunk_width})"
                )
            )

    # --------------------------------------------------
    # views
    # --------------------------------------------------
    def nonzero_items(self) -> Iterator[Tuple[int, float]]:
        """(0-based index, value)，按 index 升序。"""
        for ci, c in enumerate(self._chunks):
            if c is None:
                continue
            base = ci * self._chunk_width
            for offset in np.flatnonzero(c):
                yield base + int(offset), float(c[offset])

    def to_dense(self) -> np.ndarray:
        out = np.zeros(self._dimension, dtype=np.float64)
        for ci, c in enumerate(self._chunks):
            if c is not None:
                start = ci * self._chunk_width
                out[start:start + len(c)] = c
        return out

    def __repr__(self) -> str:
        return (
            f"ChunkedVector(dimension={self._dimension}, chunk_width={self._chunk_width}, "
            f"allocated={self.allocated_chunks}/{self.num_chunks}, sqr_norm={self._sqr_norm:.6g})"
        )
