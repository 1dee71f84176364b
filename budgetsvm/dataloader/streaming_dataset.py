#!filepath: budgetsvm/dataloader/streaming_dataset.py
from __future__ import annotations

import weakref
from pathlib import Path
from time import perf_counter
from typing import IO, List, Optional, Sequence, Tuple

import numpy as np
import scipy.sparse as sp

from budgetsvm.config.data_config import DataConfig
from budgetsvm.config.svm_config import SVMConfig
from budgetsvm.dataloader.assignment_store import AssignmentPhase, AssignmentStore
from budgetsvm.dataloader.libsvm_parser import parse_label, parse_line
from budgetsvm.utils.errors import (
    AssignmentPhaseError,
    ConfigurationError,
    DataFormatError,
    DatasetIOError,
)
from budgetsvm.utils.reporter import Reporter, resolve_reporter


class _SourceCursor:
    """文本源的游标：跨 chunk 保持打开，读到 EOF 后关闭。"""

    def __init__(self, path: Optional[Path]):
        self.path = path
        self.fh: Optional[IO[str]] = None
        self.line_no = 0

    def close(self) -> None:
        if self.fh is not None:
            self.fh.close()
            self.fh = None


def _release(cursor: _SourceCursor, store: Optional[AssignmentStore]) -> None:
    cursor.close()
    if store is not None:
        store.close()


class StreamingDataset:
    """
    StreamingDataset（按 chunk 读取 LIBSVM 文本）

    当前 chunk 以 CSR 形式保存：
      - row_ptr      : 每行在 feature_idx / feature_val 中的起点（长度 N+1）
      - feature_idx  : 1-based 特征下标
      - feature_val  : 特征值
      - label_idx    : 每行的稠密标签下标

    模式：
      - 训练（labels=None）：遇到新标签按出现顺序追加
      - 评估（labels=[...]）：标签表冻结，未见过的标签 -> len(labels)，
        每个 chunk 只汇总告警一次
    """

    def __init__(
        self,
        path: str | Path | None,
        *,
        chunk_size: int = 50000,
        labels: Optional[Sequence[int]] = None,
        bias_term: float = 0.0,
        keep_assignments: bool = False,
        assignments_dir: Optional[str] = None,
        reporter: Reporter | None = None,
    ):
        self.reporter = resolve_reporter(reporter)
        if chunk_size < 1:
            self.reporter.fatal(ConfigurationError(f"chunk_size must be >= 1, got {chunk_size}"))
        self.chunk_size = chunk_size
        self.bias_term = bias_term
        self.is_training = labels is None

        self._labels: List[int] = [] if labels is None else [int(y) for y in labels]
        self._label_lookup = {y: i for i, y in enumerate(self._labels)}

        self._in_memory = path is None
        self._cursor = _SourceCursor(None if path is None else Path(path))
        if self._cursor.path is not None and not self._cursor.path.is_file():
            self.reporter.fatal(DatasetIOError(f"cannot open data file {self._cursor.path}"))

        self._store: Optional[AssignmentStore] = None
        if keep_assignments:
            self._store = AssignmentStore(
                in_memory=self._in_memory,
                directory=assignments_dir,
                reporter=self.reporter,
            )

        self._finalizer = weakref.finalize(self, _release, self._cursor, self._store)

        self._dimension_highest_seen = 0
        self._loaded_so_far = 0
        self._num_nonzero = 0
        self._load_time = 0.0
        self._clear_chunk()

    # --------------------------------------------------
    # construction
    # --------------------------------------------------
    @classmethod
    def from_config(
        cls,
        path: str | Path,
        data_cfg: DataConfig,
        svm_cfg: SVMConfig,
        *,
        labels: Optional[Sequence[int]] = None,
        keep_assignments: bool = False,
        reporter: Reporter | None = None,
    ) -> "StreamingDataset":
        return cls(
            path,
            chunk_size=data_cfg.chunk_size,
            labels=labels,
            bias_term=svm_cfg.bias_term,
            keep_assignments=keep_assignments,
            assignments_dir=data_cfg.assignments_dir,
            reporter=reporter,
        )

    @classmethod
    def from_arrays(
        cls,
        labels: Sequence,
        matrix,
        *,
        label_list: Optional[Sequence[int]] = None,
        bias_term: float = 0.0,
        keep_assignments: bool = False,
        reporter: Reporter | None = None,
    ) -> "StreamingDataset":
        """
        内存数据集：labels + (scipy 稀疏 / 稠密) 矩阵，一次性全部载入。
        load_next_chunk() 永远返回 False 且不改动数据。
        """
        ds = cls(
            None,
            labels=label_list,
            bias_term=bias_term,
            keep_assignments=keep_assignments,
            reporter=reporter,
        )

        csr = sp.csr_matrix(matrix, dtype=np.float64)
        csr.eliminate_zeros()
        csr.sort_indices()
        if csr.shape[0] != len(labels):
            ds.reporter.fatal(
                DataFormatError(f"{len(labels)} labels given for a matrix with {csr.shape[0]} rows")
            )

        unseen: set = set()
        label_idx = np.empty(len(labels), dtype=np.int64)
        for i, y in enumerate(labels):
            try:
                label = parse_label(str(y))
            except ValueError as e:
                ds.reporter.fatal(DataFormatError(f"row {i}: invalid label {y!r} ({e})"))
            label_idx[i] = ds._resolve_label(label, unseen)
        ds._warn_unseen(unseen)

        ds._row_ptr = csr.indptr.astype(np.int64)
        ds._feature_idx = csr.indices.astype(np.int64) + 1
        ds._feature_val = csr.data.copy()
        ds._label_idx = label_idx
        ds._dimension_highest_seen = int(csr.shape[1])
        ds._loaded_so_far = csr.shape[0]
        ds._num_nonzero = int(csr.nnz)
        return ds

    # --------------------------------------------------
    # loading
    # --------------------------------------------------
    def _clear_chunk(self) -> None:
        self._row_ptr = np.zeros(1, dtype=np.int64)
        self._feature_idx = np.zeros(0, dtype=np.int64)
        self._feature_val = np.zeros(0, dtype=np.float64)
        self._label_idx = np.zeros(0, dtype=np.int64)

    def _resolve_label(self, label: int, unseen: set) -> int:
        idx = self._label_lookup.get(label)
        if idx is not None:
            return idx
        if self.is_training:
            self._labels.append(label)
            self._label_lookup[label] = len(self._labels) - 1
            return len(self._labels) - 1
        # 永远预测不到的下标
        unseen.add(label)
        return len(self._labels)

    def _warn_unseen(self, unseen: set) -> None:
        if unseen:
            shown = ", ".join(str(y) for y in sorted(unseen))
            self.reporter.warning(
                f"Testing label(s) {shown} detected during loading that were not seen in training"
            )

    def _switch_assignment_phase(self, assign: bool) -> None:
        if self._store is not None:
            if assign:
                self._store.start_write()
            elif self._store.phase != AssignmentPhase.EMPTY:
                self._store.start_read()

    def load_next_chunk(self, max_rows: Optional[int] = None, assign: bool = False) -> bool:
        """
        读取下一个 chunk（最多 max_rows 行，默认 chunk_size）

        返回：
          True  -> 读满一个 chunk，后面可能还有数据
          False -> 数据源已读完（下次调用从头开始新一轮）

        assign=True 表示本轮要写 assignments（写阶段），
        否则已有 assignments 时本轮进入读阶段。
        """
        self._check_open()
        if self._in_memory:
            self._switch_assignment_phase(assign)
            return False

        max_rows = self.chunk_size if max_rows is None else max_rows
        if max_rows < 1:
            self.reporter.fatal(ConfigurationError(f"max_rows must be >= 1, got {max_rows}"))
        start = perf_counter()

        self._clear_chunk()
        cursor = self._cursor
        if cursor.fh is None:
            try:
                cursor.fh = open(cursor.path, "r", encoding="utf-8")
            except OSError as e:
                self.reporter.fatal(DatasetIOError(f"cannot open data file {cursor.path}: {e}"))
            cursor.line_no = 0
            self._loaded_so_far = 0
            self._num_nonzero = 0
            self._switch_assignment_phase(assign)

        row_ptr = [0]
        idx_parts: List[np.ndarray] = []
        val_parts: List[np.ndarray] = []
        label_idx: List[int] = []
        unseen: set = set()
        nnz = 0
        full = False

        for line in cursor.fh:
            cursor.line_no += 1
            parsed = parse_line(line, cursor.line_no, reporter=self.reporter)
            if parsed is None:
                continue

            label_idx.append(self._resolve_label(parsed.label, unseen))
            idx_parts.append(parsed.indices)
            val_parts.append(parsed.values)
            nnz += len(parsed.indices)
            row_ptr.append(nnz)
            if len(parsed.indices):
                self._dimension_highest_seen = max(
                    self._dimension_highest_seen, int(parsed.indices.max())
                )

            if len(label_idx) == max_rows:
                full = True
                break

        if not full:
            # EOF：关闭，下次调用重新打开
            cursor.close()

        self._row_ptr = np.asarray(row_ptr, dtype=np.int64)
        if idx_parts:
            self._feature_idx = np.concatenate(idx_parts)
            self._feature_val = np.concatenate(val_parts)
        self._label_idx = np.asarray(label_idx, dtype=np.int64)

        self._loaded_so_far += len(label_idx)
        self._num_nonzero += nnz
        self._load_time += perf_counter() - start
        self._warn_unseen(unseen)
        return full

    # --------------------------------------------------
    # chunk accessors
    # --------------------------------------------------
    @property
    def num_rows(self) -> int:
        return int(self._label_idx.shape[0])

    def __len__(self) -> int:
        return self.num_rows

    @property
    def labels(self) -> List[int]:
        return list(self._labels)

    @property
    def num_classes(self) -> int:
        return len(self._labels)

    @property
    def dimension_highest_seen(self) -> int:
        return self._dimension_highest_seen

    @property
    def loaded_so_far(self) -> int:
        return self._loaded_so_far

    @property
    def num_nonzero_features(self) -> int:
        return self._num_nonzero

    @property
    def load_time(self) -> float:
        """累计解析耗时（秒）。"""
        return self._load_time

    @property
    def in_memory(self) -> bool:
        return self._in_memory

    @property
    def label_indices(self) -> np.ndarray:
        return self._label_idx

    def row(self, t: int) -> Tuple[np.ndarray, np.ndarray]:
        start, end = self._row_ptr[t], self._row_ptr[t + 1]
        return self._feature_idx[start:end], self._feature_val[start:end]

    def label_index(self, t: int) -> int:
        return int(self._label_idx[t])

    def label_of(self, t: int) -> Optional[int]:
        """原始标签；评估模式下未见过的标签返回 None。"""
        idx = self.label_index(t)
        return self._labels[idx] if idx < len(self._labels) else None

    def get_element(self, t: int, feature_index: int) -> float:
        """
        feature_index 为 0-based。越界只告警并返回 0。
        """
        if t < 0 or t >= self.num_rows:
            self.reporter.warning(
                "Vector index in get_element() out of bounds, returning default value of 0"
            )
            return 0.0
        if feature_index < 0 or feature_index >= self._dimension_highest_seen:
            self.reporter.warning(
                "Element index in get_element() out of bounds, returning default value of 0"
            )
            return 0.0

        indices, values = self.row(t)
        pos = int(np.searchsorted(indices, feature_index + 1))
        if pos < len(indices) and indices[pos] == feature_index + 1:
            return float(values[pos])
        return 0.0

    def squared_norm(self, t: int) -> float:
        if t < 0 or t >= self.num_rows:
            self.reporter.warning(
                "Vector index in squared_norm() out of bounds, returning default value of 0"
            )
            return 0.0
        _, values = self.row(t)
        result = float(np.dot(values, values))
        if self.bias_term != 0.0:
            result += self.bias_term * self.bias_term
        return result

    def pairwise_distance(self, a: int, b: int) -> float:
        """
        两行的平方欧氏距离：对两个有序下标表做一次归并
        """
        if a == b:
            return 0.0
        if not (0 <= a < self.num_rows and 0 <= b < self.num_rows):
            self.reporter.warning(
                "Vector index in pairwise_distance() out of bounds, returning default value of 0"
            )
            return 0.0

        ia, va = self.row(a)
        ib, vb = self.row(b)
        i = j = 0
        result = 0.0
        while i < len(ia) and j < len(ib):
            if ia[i] == ib[j]:
                diff = va[i] - vb[j]
                i += 1
                j += 1
            elif ia[i] < ib[j]:
                diff = va[i]
                i += 1
            else:
                diff = vb[j]
                j += 1
            result += float(diff * diff)
        # 剩余部分
        result += float(np.dot(va[i:], va[i:])) + float(np.dot(vb[j:], vb[j:]))
        return result

    def to_csr(self, num_features: Optional[int] = None) -> sp.csr_matrix:
        """当前 chunk 的 scipy CSR 视图（列为 0-based 特征下标）。"""
        width = max(num_features or 0, self._dimension_highest_seen)
        return sp.csr_matrix(
            (self._feature_val, self._feature_idx - 1, self._row_ptr),
            shape=(self.num_rows, width),
        )

    # --------------------------------------------------
    # assignments
    # --------------------------------------------------
    def _require_store(self) -> AssignmentStore:
        if self._store is None:
            self.reporter.fatal(
                AssignmentPhaseError("dataset was created without keep_assignments=True")
            )
        return self._store

    def save_assignments(self, values) -> None:
        store = self._require_store()
        values = np.asarray(values, dtype=np.int64).ravel()
        if len(values) != self.num_rows:
            self.reporter.fatal(
                DataFormatError(f"expected {self.num_rows} assignments for the chunk, got {len(values)}")
            )
        store.append(values)

    def read_chunk_assignments(self) -> np.ndarray:
        return self._require_store().read(self.num_rows)

    @property
    def assignment_store(self) -> Optional[AssignmentStore]:
        return self._store

    # --------------------------------------------------
    # lifecycle
    # --------------------------------------------------
    @property
    def closed(self) -> bool:
        return not self._finalizer.alive

    def _check_open(self) -> None:
        if self.closed:
            self.reporter.fatal(DatasetIOError("dataset is closed"))

    def close(self) -> None:
        self._finalizer()

    def __enter__(self) -> "StreamingDataset":
        return self

    def __exit__(self, *exc) -> None:
        self.close()

    def __repr__(self) -> str:
        src = "memory" if self._in_memory else str(self._cursor.path)
        return (
            f"StreamingDataset(source={src}, rows={self.num_rows}, "
            f"labels={self._labels}, dim={self._dimension_highest_seen})"
        )
