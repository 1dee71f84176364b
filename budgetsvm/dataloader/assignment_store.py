#!filepath: budgetsvm/dataloader/assignment_store.py
from __future__ import annotations

import os
import tempfile
import weakref
from enum import Enum
from itertools import islice
from typing import IO, List, Optional

import numpy as np

from budgetsvm.utils.errors import AssignmentPhaseError, DatasetIOError
from budgetsvm.utils.reporter import Reporter, resolve_reporter


class AssignmentPhase(str, Enum):
    EMPTY = "empty"   # 新建 / 刚开始写，还没有可读内容
    WRITE = "write"
    READ = "read"


def _remove_file(path: Optional[str]) -> None:
    if path is None:
        return
    try:
        os.remove(path)
    except FileNotFoundError:
        pass


class AssignmentStore:
    """
    AssignmentStore（每个样本一个整数的旁路通道）

    - 磁盘模式：构造时在 directory（默认系统临时目录）创建文件，
      每个 chunk 追加一段，一行一个整数；close() / GC 时删除
    - 内存模式：numpy 数组，整个数据集一次性保存

    阶段约束（每个 epoch）：
      start_write() -> append()* -> start_read() -> read()*
    写阶段里读、读阶段里写都会抛 AssignmentPhaseError
    """

    def __init__(
        self,
        *,
        in_memory: bool = False,
        directory: Optional[str] = None,
        reporter: Reporter | None = None,
    ):
        self.reporter = resolve_reporter(reporter)
        self.in_memory = in_memory
        self.phase = AssignmentPhase.EMPTY

        self._path: Optional[str] = None
        self._reader: Optional[IO[str]] = None
        self._parts: List[np.ndarray] = []
        self._memory = np.zeros(0, dtype=np.int64)
        self._cursor = 0
        self._num_written = 0

        if not in_memory:
            try:
                fd, self._path = tempfile.mkstemp(
                    prefix="budgetsvm_assign_", suffix=".txt", dir=directory
                )
                os.close(fd)
            except OSError as e:
                self.reporter.fatal(
                    DatasetIOError(f"cannot create assignment file in {directory or tempfile.gettempdir()}: {e}")
                )

        self._finalizer = weakref.finalize(self, _remove_file, self._path)

    # --------------------------------------------------
    @property
    def path(self) -> Optional[str]:
        return self._path

    @property
    def num_written(self) -> int:
        return self._num_written

    @property
    def closed(self) -> bool:
        return not self._finalizer.alive

    # --------------------------------------------------
    # write phase
    # --------------------------------------------------
    def start_write(self) -> None:
        """开始新一轮写入：清空旧内容。"""
        self._check_open()
        self._close_reader()
        if self._path is not None:
            with open(self._path, "w", encoding="ascii"):
                pass
        self._parts = []
        self._memory = np.zeros(0, dtype=np.int64)
        self._num_written = 0
        self._cursor = 0
        self.phase = AssignmentPhase.WRITE

    def append(self, values) -> None:
        self._check_open()
        if self.phase == AssignmentPhase.READ:
            self.reporter.fatal(
                AssignmentPhaseError(
                    "assignments are being read back; call start_write() before saving new ones"
                )
            )
        self.phase = AssignmentPhase.WRITE

        values = np.asarray(values, dtype=np.int64).ravel()
        if self._path is not None:
            try:
                with open(self._path, "a", encoding="ascii") as fh:
                    np.savetxt(fh, values, fmt="%d")
            except OSError as e:
                self.reporter.fatal(DatasetIOError(f"cannot append to assignment file {self._path}: {e}"))
        else:
            self._parts.append(values.copy())
        self._num_written += len(values)

    # --------------------------------------------------
    # read phase
    # --------------------------------------------------
    def start_read(self) -> None:
        """切到读阶段，游标回到开头。"""
        self._check_open()
        if self.phase == AssignmentPhase.EMPTY:
            self.reporter.fatal(AssignmentPhaseError("no assignments were written in this pass"))

        self._close_reader()
        if self._path is not None:
            try:
                self._reader = open(self._path, "r", encoding="ascii")
            except OSError as e:
                self.reporter.fatal(DatasetIOError(f"cannot read assignment file {self._path}: {e}"))
        elif self._parts:
            self._memory = np.concatenate(self._parts)
            self._parts = []
        self._cursor = 0
        self.phase = AssignmentPhase.READ

    def read(self, n: int) -> np.ndarray:
        self._check_open()
        if self.phase != AssignmentPhase.READ:
            self.reporter.fatal(
                AssignmentPhaseError(
                    f"cannot read assignments during the {self.phase.value} phase; call start_read() first"
                )
            )

        if self._reader is not None:
            lines = list(islice(self._reader, n))
            try:
                out = np.array([int(line) for line in lines], dtype=np.int64)
            except ValueError as e:
                self.reporter.fatal(DatasetIOError(f"corrupt assignment file {self._path}: {e}"))
        else:
            out = self._memory[self._cursor:self._cursor + n].copy()

        if len(out) < n:
            self.reporter.fatal(
                AssignmentPhaseError(
                    f"requested {n} assignments but only {len(out)} remain "
                    f"({self._num_written} written in the last pass)"
                )
            )
        self._cursor += n
        return out

    # --------------------------------------------------
    def _close_reader(self) -> None:
        if self._reader is not None:
            self._reader.close()
            self._reader = None

    def _check_open(self) -> None:
        if self.closed:
            self.reporter.fatal(AssignmentPhaseError("assignment store is closed"))

    def close(self) -> None:
        self._close_reader()
        self._finalizer()

    def __enter__(self) -> "AssignmentStore":
        return self

    def __exit__(self, *exc) -> None:
        self.close()
