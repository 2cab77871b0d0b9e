"""
Matrix engine package.

Level progression, receiver selection and donation generation.
"""

from donation_matrix.services.matrix.advancement_gate import AdvancementGate
from donation_matrix.services.matrix.cascade_generator import (
    CascadeGenerator,
    GenerationResult,
)
from donation_matrix.services.matrix.cycle_bootstrap import (
    CycleBootstrap,
    CycleResult,
    map_cycle_pairs,
)
from donation_matrix.services.matrix.engine import (
    ConfirmationOutcome,
    LevelProgress,
    MatrixEngine,
)
from donation_matrix.services.matrix.placement import SlotPlacer
from donation_matrix.services.matrix.progress_tracker import (
    CompletionState,
    ProgressTracker,
)
from donation_matrix.services.matrix.receiver_selector import ReceiverSelector

__all__ = [
    "AdvancementGate",
    "CascadeGenerator",
    "CompletionState",
    "ConfirmationOutcome",
    "CycleBootstrap",
    "CycleResult",
    "GenerationResult",
    "LevelProgress",
    "MatrixEngine",
    "ProgressTracker",
    "ReceiverSelector",
    "SlotPlacer",
    "map_cycle_pairs",
]
