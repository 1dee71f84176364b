from .assignment_store import AssignmentPhase, AssignmentStore
from .streaming_dataset import StreamingDataset

__all__ = ["StreamingDataset", "AssignmentStore", "AssignmentPhase"]
