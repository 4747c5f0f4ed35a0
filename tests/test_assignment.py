import pytest

from amigo.services.assignment import (
    AssignmentError,
    Pairing,
    UnsatisfiableConstraintsError,
    generate_assignments,
    is_feasible,
)


def as_dict(pairings):
    return {pairing.giver_id: pairing.receiver_id for pairing in pairings}


def test_assignment_basic_bijection():
    participants = [1, 2, 3, 4]
    assignments = as_dict(generate_assignments(participants, seed=42))
    assert set(assignments.keys()) == set(participants)
    assert set(assignments.values()) == set(participants)
    assert all(giver != receiver for giver, receiver in assignments.items())


def test_assignment_keeps_giver_order():
    participants = [5, 3, 9, 1, 7]
    pairings = generate_assignments(participants, seed=3)
    assert [pairing.giver_id for pairing in pairings] == participants


def test_assignment_two_people():
    for seed in range(20):
        pairings = generate_assignments([10, 20], seed=seed)
        assert pairings == [Pairing(10, 20), Pairing(20, 10)]


def test_assignment_deterministic_seed():
    participants = [1, 2, 3, 4, 5]
    first = generate_assignments(participants, seed=123)
    second = generate_assignments(participants, seed=123)
    assert first == second


def test_assignment_never_self_assigns_without_restrictions():
    participants = list(range(1, 11))
    for seed in range(50):
        pairings = generate_assignments(participants, seed=seed)
        assert all(pairing.giver_id != pairing.receiver_id for pairing in pairings)
        assert sorted(pairing.receiver_id for pairing in pairings) == participants


def test_assignment_respects_restrictions():
    participants = ["A", "B", "C", "D"]
    restrictions = {"A": frozenset({"B"})}
    for seed in range(200):
        assignments = as_dict(generate_assignments(participants, restrictions, seed=seed))
        assert assignments["A"] in {"C", "D"}
        assert sorted(assignments.values()) == participants


def test_assignment_respects_dense_restrictions():
    participants = [1, 2, 3, 4, 5, 6]
    restrictions = {
        1: frozenset({2, 3}),
        2: frozenset({1}),
        3: frozenset({4, 5}),
        4: frozenset({3}),
        5: frozenset({6}),
        6: frozenset({5, 1}),
    }
    for seed in range(30):
        for pairing in generate_assignments(participants, restrictions, seed=seed):
            assert pairing.receiver_id not in restrictions[pairing.giver_id]


def test_assignment_fails_for_too_few_participants():
    with pytest.raises(AssignmentError):
        generate_assignments([1])


def test_assignment_rejects_non_positive_budget():
    with pytest.raises(ValueError):
        generate_assignments([1, 2], max_attempts=0)


def test_assignment_fails_for_mutual_exclusions():
    participants = [1, 2, 3]
    restrictions = {
        1: frozenset({2, 3}),
        2: frozenset({1, 3}),
        3: frozenset({1, 2}),
    }
    with pytest.raises(UnsatisfiableConstraintsError) as excinfo:
        generate_assignments(participants, restrictions, max_attempts=50, seed=7)
    assert excinfo.value.attempts == 50
    assert excinfo.value.proven_infeasible


def test_unsatisfiable_error_is_an_assignment_error():
    with pytest.raises(AssignmentError):
        generate_assignments([1, 2], {1: frozenset({2})}, max_attempts=10, seed=1)


def test_feasibility_detects_hidden_infeasibility():
    # every giver still has a candidate, but no derangement survives
    restrictions = {"A": frozenset({"B"}), "B": frozenset({"A"})}
    assert not is_feasible(["A", "B", "C"], restrictions)


def test_feasibility_accepts_solvable_restrictions():
    assert is_feasible(["A", "B", "C", "D"], {"A": frozenset({"B"})})
    assert is_feasible([1, 2], {})
    assert not is_feasible([1], {})


class AllowOnly:
    """Forbids every receiver except the listed ones."""

    def __init__(self, *allowed):
        self.allowed = set(allowed)

    def __contains__(self, receiver):
        return receiver not in self.allowed


def test_feasibility_handles_augmenting_paths_longer_than_recursion_limit():
    # greedy matching pairs almost every i with i + 1, so the last giver, who may
    # only give to 1, forces an augmenting path through the whole group
    size = 1500
    last = size - 1
    restrictions = {
        person: AllowOnly(person + 1, (person + 2) % size) for person in range(last)
    }
    restrictions[last] = AllowOnly(1)

    assert is_feasible(list(range(size)), restrictions)
