#!filepath: budgetsvm/training/model_io.py
"""
Text persistence of BSGD models.

Layout::

    ALGORITHM: bsgd
    DIMENSION: 3
    NUMBER_OF_CLASSES: 2
    LABELS: 1 -1
    NUMBER_OF_WEIGHTS: 2
    BIAS_TERM: 0
    KERNEL_FUNCTION: gaussian
    KERNEL_GAMMA_PARAM: 0.5
    KERNEL_DEGREE_PARAM: 2
    KERNEL_COEF_PARAM: 0
    CHUNK_WIDTH: 1000
    ITERATIONS: 20
    MODEL:
    -1:0.25 -2:-0.25 1:1 3:2

Support-vector lines start with the non-zero alphas as ``-class:alpha``
(1-based class index, the leading minus marks the token as an alpha) and
continue with the vector's ``index:value`` pairs (1-based).
"""
from __future__ import annotations

from pathlib import Path
from typing import Dict, List

from budgetsvm.config.svm_config import Algorithm, KernelType
from budgetsvm.core.budgeted_vector import BudgetedVector
from budgetsvm.training.model import BSGDModel
from budgetsvm.utils.errors import DataFormatError, DatasetIOError
from budgetsvm.utils.reporter import Reporter, resolve_reporter

_HEADER_KEYS = (
    "ALGORITHM",
    "DIMENSION",
    "NUMBER_OF_CLASSES",
    "LABELS",
    "NUMBER_OF_WEIGHTS",
    "BIAS_TERM",
    "KERNEL_FUNCTION",
    "KERNEL_GAMMA_PARAM",
    "KERNEL_DEGREE_PARAM",
    "KERNEL_COEF_PARAM",
    "CHUNK_WIDTH",
    "ITERATIONS",
)


def _fmt(x: float) -> str:
    return repr(float(x))


def format_support_vector(sv: BudgetedVector) -> str:
    parts = [f"-{c + 1}:{_fmt(a)}" for c, a in enumerate(sv.alphas) if a != 0.0]
    parts += [f"{i + 1}:{_fmt(v)}" for i, v in sv.vector.nonzero_items()]
    return " ".join(parts)


def save_model(model: BSGDModel, path: str | Path, *, reporter: Reporter | None = None) -> Path:
    reporter = resolve_reporter(reporter)
    path = Path(path)

    header = {
        "ALGORITHM": model.algorithm.value,
        "DIMENSION": str(model.dimension),
        "NUMBER_OF_CLASSES": str(model.num_classes),
        "LABELS": " ".join(str(y) for y in model.labels),
        "NUMBER_OF_WEIGHTS": str(model.num_support_vectors),
        "BIAS_TERM": _fmt(model.bias_term),
        "KERNEL_FUNCTION": model.kernel.value,
        "KERNEL_GAMMA_PARAM": _fmt(model.gamma),
        "KERNEL_DEGREE_PARAM": _fmt(model.degree),
        "KERNEL_COEF_PARAM": _fmt(model.coef),
        "CHUNK_WIDTH": str(model.chunk_width),
        "ITERATIONS": str(model.iterations),
    }

    try:
        with open(path, "w", encoding="utf-8") as fh:
            for key in _HEADER_KEYS:
                fh.write(f"{key}: {header[key]}\n")
            fh.write("MODEL:\n")
            for sv in model.support_vectors:
                fh.write(format_support_vector(sv) + "\n")
    except OSError as e:
        reporter.fatal(DatasetIOError(f"cannot write model file {path}: {e}"))

    return path


def _parse_header(lines: List[str], path: Path, reporter: Reporter) -> Dict[str, str]:
    header: Dict[str, str] = {}
    for line_no, line in enumerate(lines, start=1):
        key, sep, value = line.partition(":")
        key = key.strip()
        if not sep or key not in _HEADER_KEYS:
            reporter.fatal(DataFormatError(f"{path}:{line_no}: unexpected header line {line.strip()!r}"))
        header[key] = value.strip()

    missing = [k for k in _HEADER_KEYS if k not in header]
    if missing:
        reporter.fatal(DataFormatError(f"{path}: missing header field(s) {', '.join(missing)}"))
    return header


def load_model(path: str | Path, *, reporter: Reporter | None = None) -> BSGDModel:
    reporter = resolve_reporter(reporter)
    path = Path(path)

    try:
        with open(path, "r", encoding="utf-8") as fh:
            lines = fh.read().splitlines()
    except OSError as e:
        reporter.fatal(DatasetIOError(f"cannot read model file {path}: {e}"))

    try:
        model_at = next(i for i, line in enumerate(lines) if line.strip() == "MODEL:")
    except StopIteration:
        reporter.fatal(DataFormatError(f"{path}: no MODEL: section"))

    header = _parse_header(lines[:model_at], path, reporter)

    try:
        model = BSGDModel(
            dimension=int(header["DIMENSION"]),
            chunk_width=int(header["CHUNK_WIDTH"]),
            labels=[int(y) for y in header["LABELS"].split()],
            kernel=KernelType(header["KERNEL_FUNCTION"]),
            gamma=float(header["KERNEL_GAMMA_PARAM"]),
            degree=float(header["KERNEL_DEGREE_PARAM"]),
            coef=float(header["KERNEL_COEF_PARAM"]),
            bias_term=float(header["BIAS_TERM"]),
            iterations=int(header["ITERATIONS"]),
            algorithm=Algorithm(header["ALGORITHM"]),
        )
        num_classes = int(header["NUMBER_OF_CLASSES"])
        num_weights = int(header["NUMBER_OF_WEIGHTS"])
    except ValueError as e:
        reporter.fatal(DataFormatError(f"{path}: invalid header value ({e})"))

    if num_classes != model.num_classes:
        reporter.fatal(
            DataFormatError(
                f"{path}: NUMBER_OF_CLASSES is {num_classes} but {model.num_classes} labels are listed"
            )
        )

    # 每行一个支持向量；全零支持向量对应空行
    for line_no, line in enumerate(lines[model_at + 1:], start=model_at + 2):
        sv = BudgetedVector.support_vector(
            model.dimension, model.chunk_width, model.num_classes, reporter=reporter
        )
        for tok in line.split():
            is_alpha = tok.startswith("-")
            idx, sep, val = (tok[1:] if is_alpha else tok).partition(":")
            try:
                if not sep:
                    raise ValueError("expected index:value")
                idx, val = int(idx), float(val)
            except ValueError as e:
                reporter.fatal(DataFormatError(f"{path}:{line_no}: malformed token {tok!r} ({e})"))

            if is_alpha:
                if not 1 <= idx <= model.num_classes:
                    reporter.fatal(
                        DataFormatError(f"{path}:{line_no}: class index {idx} out of range")
                    )
                sv.alphas[idx - 1] = val
            else:
                sv.vector[idx - 1] = val
        model.support_vectors.append(sv)

    if len(model.support_vectors) != num_weights:
        reporter.fatal(
            DataFormatError(
                f"{path}: NUMBER_OF_WEIGHTS is {num_weights} but {len(model.support_vectors)} "
                "support vectors were read"
            )
        )
    return model
