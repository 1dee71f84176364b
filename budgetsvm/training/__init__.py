from .landmarks import select_landmarks
from .maintenance import BudgetMaintainer, MaintenanceEvent, MaintenanceState
from .model import BSGDModel
from .model_io import load_model, save_model

__all__ = [
    "BudgetMaintainer",
    "MaintenanceEvent",
    "MaintenanceState",
    "BSGDModel",
    "select_landmarks",
    "save_model",
    "load_model",
]
