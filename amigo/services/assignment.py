from __future__ import annotations

import random
from dataclasses import dataclass
from typing import Dict, FrozenSet, Hashable, List, Mapping, Optional, Sequence, Tuple

from loguru import logger

DEFAULT_MAX_ATTEMPTS = 1000


class AssignmentError(RuntimeError):
    pass


class UnsatisfiableConstraintsError(AssignmentError):
    def __init__(self, attempts: int, proven_infeasible: bool) -> None:
        self.attempts = attempts
        self.proven_infeasible = proven_infeasible
        detail = "no valid assignment exists" if proven_infeasible else "the attempt budget ran out"
        super().__init__(
            f"Unable to generate valid assignments after {attempts} attempts ({detail}). "
            "Please review restrictions."
        )


@dataclass(frozen=True)
class Pairing:
    giver_id: Hashable
    receiver_id: Hashable


def is_allowed(
    giver_id: Hashable,
    receiver_id: Hashable,
    restrictions: Mapping[Hashable, FrozenSet[Hashable]],
) -> bool:
    if giver_id == receiver_id:
        return False
    return receiver_id not in restrictions.get(giver_id, frozenset())


def _augment(
    start: Hashable,
    allowed: Mapping[Hashable, List[Hashable]],
    matched_giver: Dict[Hashable, Hashable],
) -> bool:
    visited = set()
    # path[i] is the edge from stack[i]'s giver to the receiver held by stack[i + 1]
    path: List[Tuple[Hashable, Hashable]] = []
    stack = [(start, iter(allowed[start]))]
    while stack:
        giver, candidates = stack[-1]
        for receiver in candidates:
            if receiver in visited:
                continue
            visited.add(receiver)
            current = matched_giver.get(receiver)
            if current is None:
                matched_giver[receiver] = giver
                for path_giver, path_receiver in path:
                    matched_giver[path_receiver] = path_giver
                return True
            path.append((giver, receiver))
            stack.append((current, iter(allowed[current])))
            break
        else:
            stack.pop()
            if path:
                path.pop()
    return False


def is_feasible(
    participant_ids: Sequence[Hashable],
    restrictions: Mapping[Hashable, FrozenSet[Hashable]],
) -> bool:
    """Tell whether any restricted derangement exists.

    Looks for a perfect matching between givers and receivers with augmenting
    paths, so the answer is exact rather than probabilistic. The search keeps
    its own stack, so path length is not bounded by the recursion limit.
    """
    participants = list(participant_ids)
    if len(participants) < 2:
        return False

    allowed = {
        giver: [receiver for receiver in participants if is_allowed(giver, receiver, restrictions)]
        for giver in participants
    }
    matched_giver: Dict[Hashable, Hashable] = {}
    return all(_augment(giver, allowed, matched_giver) for giver in participants)


def _attempt(
    givers: Sequence[Hashable],
    rng: random.Random,
    restrictions: Mapping[Hashable, FrozenSet[Hashable]],
) -> Optional[List[Pairing]]:
    receivers = list(givers)
    rng.shuffle(receivers)
    pairings: List[Pairing] = []
    for giver_id, receiver_id in zip(givers, receivers):
        if not is_allowed(giver_id, receiver_id, restrictions):
            return None
        pairings.append(Pairing(giver_id=giver_id, receiver_id=receiver_id))
    return pairings


def generate_assignments(
    participant_ids: Sequence[Hashable],
    restrictions: Optional[Mapping[Hashable, FrozenSet[Hashable]]] = None,
    max_attempts: int = DEFAULT_MAX_ATTEMPTS,
    seed: Optional[int] = None,
) -> List[Pairing]:
    if len(participant_ids) < 2:
        raise AssignmentError("At least 2 participants are required.")
    if max_attempts < 1:
        raise ValueError("max_attempts must be a positive integer.")

    rng = random.Random(seed)
    givers = list(participant_ids)
    restrictions = restrictions or {}

    for attempt in range(1, max_attempts + 1):
        pairings = _attempt(givers, rng, restrictions)
        if pairings is not None:
            logger.debug("Valid assignment found on attempt {attempt}", attempt=attempt)
            return pairings

    proven_infeasible = not is_feasible(givers, restrictions)
    logger.bind(participants=len(givers), proven_infeasible=proven_infeasible).warning(
        "Assignment search exhausted {attempts} attempts", attempts=max_attempts
    )
    raise UnsatisfiableConstraintsError(max_attempts, proven_infeasible)
