# tests/conftest.py
from __future__ import annotations

from pathlib import Path
from typing import Callable, List, Sequence, Tuple

import numpy as np
import pytest
from loguru import logger

from budgetsvm.utils.reporter import Reporter


@pytest.fixture(autouse=True)
def disable_file_logger():
    logger.remove()
    logger.add(lambda msg: None)  # or sys.stderr
    yield


# 4 行场景：维度 3，两类
FOUR_ROWS = [
    "1 1:1.0 3:2.0",
    "1 2:1.0",
    "-1 1:-1.0",
    "-1 3:-2.0",
]


@pytest.fixture
def write_libsvm(tmp_path: Path) -> Callable[..., Path]:
    """
    工厂：把若干行写成 LIBSVM 文本文件
    """

    def _write(lines: Sequence[str], name: str = "data.txt") -> Path:
        p = tmp_path / name
        p.write_text("\n".join(lines) + "\n", encoding="utf-8")
        return p

    return _write


@pytest.fixture
def four_rows_file(write_libsvm) -> Path:
    return write_libsvm(FOUR_ROWS, "four_rows.txt")


@pytest.fixture
def messages() -> List[str]:
    return []


@pytest.fixture
def recording_reporter(messages) -> Reporter:
    """warning / info 全部收集到 messages，方便断言"""
    return Reporter(verbose=True, on_message=messages.append)


def random_sparse_rows(
    rng: np.random.Generator, n_rows: int, dim: int, density: float = 0.3
) -> List[Tuple[int, np.ndarray, np.ndarray]]:
    """(label, 1-based indices, values)，下标升序"""
    rows = []
    for _ in range(n_rows):
        mask = rng.random(dim) < density
        idx = np.flatnonzero(mask) + 1
        vals = np.round(rng.normal(size=len(idx)), 4)
        vals[vals == 0.0] = 0.5
        label = int(rng.choice([-1, 1, 2]))
        rows.append((label, idx, vals))
    return rows


def rows_to_lines(rows) -> List[str]:
    return [
        " ".join([str(label)] + [f"{i}:{v!r}" for i, v in zip(idx, map(float, vals))])
        for label, idx, vals in rows
    ]


@pytest.fixture
def make_sparse_rows():
    return random_sparse_rows


@pytest.fixture
def to_lines():
    return rows_to_lines
