from amigo.services.assignment import (
    AssignmentError,
    Pairing,
    UnsatisfiableConstraintsError,
    generate_assignments,
    is_feasible,
)
from amigo.services.draw import DrawFailure, DrawOutcome, perform_draw
from amigo.services.restrictions import ParticipantRecord, build_restriction_map

__all__ = [
    "AssignmentError",
    "Pairing",
    "UnsatisfiableConstraintsError",
    "generate_assignments",
    "is_feasible",
    "DrawFailure",
    "DrawOutcome",
    "perform_draw",
    "ParticipantRecord",
    "build_restriction_map",
]
