# budgetsvm/utils/errors.py
class UserInputError(RuntimeError):
    """
    Raised for invalid user-provided config (kernel, budget, file paths, etc).
    Should NOT print traceback.
    """


class BudgetedSVMError(RuntimeError):
    """Root of every fatal error raised by budgetsvm."""


class ConfigurationError(BudgetedSVMError, UserInputError):
    """Invalid parameter or parameter combination, detected before training."""


class DatasetIOError(BudgetedSVMError):
    """Source file unreadable, or an auxiliary/model file cannot be created."""


class DataFormatError(BudgetedSVMError):
    """Malformed LIBSVM row or model line."""


class VectorIndexError(BudgetedSVMError, IndexError):
    """Write or kernel access outside a vector's dimensionality."""


class AssignmentPhaseError(BudgetedSVMError):
    """Assignment side channel used out of its write-then-read order."""
