#!filepath: budgetsvm/dataloader/libsvm_parser.py
from __future__ import annotations

from typing import NamedTuple, Optional

import numpy as np

from budgetsvm.utils.errors import DataFormatError
from budgetsvm.utils.reporter import Reporter, resolve_reporter


class LibSVMRow(NamedTuple):
    label: int
    indices: np.ndarray  # int64, 1-based
    values: np.ndarray   # float64


def parse_label(token: str) -> int:
    """
    LIBSVM 标签：整数；"1.0" / "+1" 这类整值浮点也接受
    """
    try:
        return int(token)
    except ValueError:
        pass
    value = float(token)
    if not value.is_integer():
        raise ValueError(f"label {token!r} is not an integer")
    return int(value)


def parse_line(
    line: str,
    line_no: int = 0,
    *,
    reporter: Reporter | None = None,
) -> Optional[LibSVMRow]:
    """
    解析一行 `label index:value index:value ...`

    - 空行 -> None
    - 格式错误 -> DataFormatError（带行号）
    """
    tokens = line.split()
    if not tokens:
        return None

    try:
        label = parse_label(tokens[0])
    except ValueError as e:
        resolve_reporter(reporter).fatal(
            DataFormatError(f"line {line_no}: invalid label {tokens[0]!r} ({e})")
        )

    n = len(tokens) - 1
    indices = np.empty(n, dtype=np.int64)
    values = np.empty(n, dtype=np.float64)

    for i, tok in enumerate(tokens[1:]):
        idx, sep, val = tok.partition(":")
        try:
            if not sep:
                raise ValueError("expected index:value")
            indices[i] = int(idx)
            values[i] = float(val)
        except ValueError as e:
            resolve_reporter(reporter).fatal(
                DataFormatError(f"line {line_no}: malformed feature {tok!r} ({e})")
            )
        if indices[i] < 1:
            resolve_reporter(reporter).fatal(
                DataFormatError(f"line {line_no}: feature index must be >= 1, got {indices[i]}")
            )

    return LibSVMRow(label, indices, values)


def format_row(label: int, indices, values) -> str:
    """反向：写出一行 LIBSVM 文本（测试 / 导出用）。"""
    feats = " ".join(f"{int(i)}:{float(v):g}" for i, v in zip(indices, values))
    return f"{label} {feats}".rstrip()
