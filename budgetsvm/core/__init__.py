from .budgeted_vector import BudgetedVector, VectorKind
from .chunked_vector import ChunkedVector
from .kernels import KernelEvaluator

__all__ = ["ChunkedVector", "BudgetedVector", "VectorKind", "KernelEvaluator"]
