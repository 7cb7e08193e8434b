"""Tests for the pure graph functions in taskflow.graph.

These run on in-memory Edge/Task lists; no database is involved.
"""

import itertools

import pytest

from taskflow.errors import (
    CircularDependencyError,
    DependencyLimitError,
    DuplicateDependencyError,
    SelfReferenceError,
    TaskNotFoundError,
)
from taskflow.graph.bulk import blocked_task_ids, blocked_tasks_info
from taskflow.graph.cycles import find_cycle, would_create_cycle
from taskflow.graph.index import build_index, get_dependency_info
from taskflow.graph.traversal import (
    DOWNSTREAM,
    UPSTREAM,
    eligible_blockers,
    format_cycle_path,
    get_downstream_chain,
    get_upstream_chain,
    reachable_ids,
)
from taskflow.graph.validator import check_dependency, validate
from taskflow.models import Edge, Task

_ids = itertools.count(1)


def _edge(dependent: str, blocking: str) -> Edge:
    """Edge meaning: ``dependent`` depends on ``blocking``."""
    n = next(_ids)
    return Edge(
        id=f"e{n}",
        dependent_task_id=dependent,
        blocking_task_id=blocking,
        created_by=None,
        created_at=f"2024-01-01T00:00:{n:02d}",
    )


def _tasks(*ids: str, completed: tuple[str, ...] = ()) -> list[Task]:
    return [
        Task(id=i, name=i.upper(), status="completed" if i in completed else "pending")
        for i in ids
    ]


def _lookup(tasks: list[Task]):
    by_id = {t.id: t for t in tasks}
    return by_id.get


# ── Cycle detection ───────────────────────────────────────


class TestWouldCreateCycle:
    def test_empty_graph(self) -> None:
        result = would_create_cycle("a", "b", [])
        assert result.would_cycle is False
        assert result.path is None
        assert result.to_dict() == {"would_cycle": False}

    def test_self_reference(self) -> None:
        result = would_create_cycle("a", "a", [])
        assert result.would_cycle is True
        assert result.path == ["a"]

    def test_two_cycle(self) -> None:
        edges = [_edge("t1", "t2")]
        result = would_create_cycle("t2", "t1", edges)
        assert result.to_dict() == {"would_cycle": True, "path": ["t2", "t1"]}

    def test_three_cycle_path_walks_the_loop(self) -> None:
        edges = [_edge("t1", "t2"), _edge("t2", "t3")]
        result = would_create_cycle("t3", "t1", edges)
        assert result.would_cycle is True
        assert result.path == ["t3", "t1", "t2"]

    def test_parallel_edge_is_not_a_cycle(self) -> None:
        edges = [_edge("a", "b"), _edge("b", "c")]
        assert would_create_cycle("a", "c", edges).would_cycle is False

    def test_same_direction_is_not_a_cycle(self) -> None:
        edges = [_edge("a", "b")]
        assert would_create_cycle("a", "b", edges).would_cycle is False

    def test_diamond_shares_visited_nodes(self) -> None:
        edges = [
            _edge("a", "b"),
            _edge("a", "c"),
            _edge("b", "d"),
            _edge("c", "d"),
        ]
        assert would_create_cycle("d", "a", edges).would_cycle is True
        assert would_create_cycle("b", "c", edges).would_cycle is False

    def test_terminates_on_corrupt_graph(self) -> None:
        edges = [_edge("x", "y"), _edge("y", "x")]
        assert would_create_cycle("a", "x", edges).would_cycle is False

    def test_long_chain(self) -> None:
        ids = [f"n{i}" for i in range(500)]
        edges = [_edge(ids[i], ids[i + 1]) for i in range(len(ids) - 1)]
        result = would_create_cycle(ids[-1], ids[0], edges)
        assert result.would_cycle is True
        assert result.path == [ids[-1], *ids[:-1]]


class TestFindCycle:
    def test_acyclic(self) -> None:
        assert find_cycle([_edge("a", "b"), _edge("b", "c")]) is None

    def test_reports_stored_cycle(self) -> None:
        cycle = find_cycle([_edge("a", "b"), _edge("b", "c"), _edge("c", "a")])
        assert cycle is not None
        assert sorted(cycle) == ["a", "b", "c"]


# ── Validation ────────────────────────────────────────────


class TestValidate:
    def test_accepts_valid_edge(self) -> None:
        tasks = _tasks("a", "b")
        validate("a", "b", [], _lookup(tasks))

    def test_self_reference_checked_before_existence(self) -> None:
        with pytest.raises(SelfReferenceError) as exc:
            validate("ghost", "ghost", [], _lookup([]))
        assert exc.value.message == "A task cannot depend on itself"

    def test_missing_tasks_listed(self) -> None:
        tasks = _tasks("a")
        with pytest.raises(TaskNotFoundError) as exc:
            validate("a", "ghost", [], _lookup(tasks))
        assert exc.value.details == {"task_ids": ["ghost"]}

    def test_duplicate(self) -> None:
        tasks = _tasks("a", "b")
        existing = _edge("a", "b")
        with pytest.raises(DuplicateDependencyError) as exc:
            validate("a", "b", [existing], _lookup(tasks))
        assert exc.value.code == "DUPLICATE"
        assert exc.value.details == {"dependency_id": existing.id}

    def test_reverse_of_existing_is_circular_not_duplicate(self) -> None:
        tasks = _tasks("a", "b")
        with pytest.raises(CircularDependencyError) as exc:
            validate("b", "a", [_edge("a", "b")], _lookup(tasks))
        assert exc.value.path == ["b", "a"]
        assert exc.value.message == "This would create a circular dependency"

    def test_limit(self) -> None:
        blockers = [f"b{i}" for i in range(11)]
        tasks = _tasks("a", *blockers)
        edges = [_edge("a", b) for b in blockers[:10]]
        with pytest.raises(DependencyLimitError) as exc:
            validate("a", blockers[10], edges, _lookup(tasks))
        assert exc.value.message == "Maximum of 10 dependencies per task reached"
        assert exc.value.details == {"limit": 10}

    def test_limit_only_counts_the_dependent_side(self) -> None:
        dependents = [f"d{i}" for i in range(12)]
        tasks = _tasks("a", "z", *dependents)
        edges = [_edge(d, "a") for d in dependents]
        validate("a", "z", edges, _lookup(tasks))

    def test_custom_limit(self) -> None:
        tasks = _tasks("a", "b", "c")
        with pytest.raises(DependencyLimitError, match="Maximum of 1 "):
            validate("a", "c", [_edge("a", "b")], _lookup(tasks), max_dependencies=1)

    def test_limit_checked_before_cycle(self) -> None:
        tasks = _tasks("a", "b", "c")
        edges = [_edge("a", "b"), _edge("c", "a")]
        with pytest.raises(DependencyLimitError):
            validate("a", "c", edges, _lookup(tasks), max_dependencies=1)


class TestCheckDependency:
    def test_valid(self) -> None:
        assert check_dependency("a", "b", [], _lookup(_tasks("a", "b"))) == {
            "valid": True
        }

    def test_circular_includes_path(self) -> None:
        result = check_dependency(
            "b", "a", [_edge("a", "b")], _lookup(_tasks("a", "b"))
        )
        assert result == {
            "valid": False,
            "reason": "CIRCULAR",
            "message": "This would create a circular dependency",
            "path": ["b", "a"],
        }

    def test_duplicate_reason(self) -> None:
        result = check_dependency(
            "a", "b", [_edge("a", "b")], _lookup(_tasks("a", "b"))
        )
        assert result["reason"] == "DUPLICATE"
        assert "path" not in result


# ── Dependency index ──────────────────────────────────────


class TestDependencyIndex:
    def test_no_dependencies(self) -> None:
        info = get_dependency_info("a", [], _tasks("a"))
        assert info.is_blocked is False
        assert info.dependency_status is None
        assert info.dependency_count == 0

    def test_unknown_task_gets_empty_info(self) -> None:
        info = get_dependency_info("ghost", [_edge("ghost", "a")], _tasks("a"))
        assert info.blocked_by_ids == []
        assert info.is_blocked is False

    def test_blocked_by_incomplete_blocker(self) -> None:
        tasks = _tasks("a", "b", "c", completed=("c",))
        edges = [_edge("a", "b"), _edge("a", "c")]
        info = get_dependency_info("a", edges, tasks)

        assert info.is_blocked is True
        assert info.dependency_status == "blocked"
        assert [t.id for t in info.blocked_by] == ["b"]
        assert info.blocked_by_ids == ["b", "c"]
        assert info.dependency_count == 2

    def test_ready_when_all_blockers_complete(self) -> None:
        tasks = _tasks("a", "b", completed=("b",))
        info = get_dependency_info("a", [_edge("a", "b")], tasks)
        assert info.is_blocked is False
        assert info.dependency_status == "ready"

    def test_blocking_is_direct_only(self) -> None:
        # a <- b <- c: b is completed, c is not
        tasks = _tasks("a", "b", "c", completed=("b",))
        edges = [_edge("a", "b"), _edge("b", "c")]
        assert get_dependency_info("a", edges, tasks).is_blocked is False
        assert get_dependency_info("b", edges, tasks).is_blocked is True

    def test_blocks_side(self) -> None:
        tasks = _tasks("a", "b", "c")
        edges = [_edge("a", "c"), _edge("b", "c")]
        info = get_dependency_info("c", edges, tasks)
        assert info.blocks_ids == ["a", "b"]
        assert [t.id for t in info.blocks] == ["a", "b"]
        assert info.dependency_status is None

    def test_build_index_matches_single_lookups(self) -> None:
        tasks = _tasks("a", "b", "c", "d", completed=("d",))
        edges = [_edge("a", "b"), _edge("b", "c"), _edge("a", "d")]
        index = build_index(edges, tasks)

        assert set(index) == {"a", "b", "c", "d"}
        for task in tasks:
            assert index[task.id] == get_dependency_info(task.id, edges, tasks)

    def test_to_dict(self) -> None:
        tasks = _tasks("a", "b")
        data = get_dependency_info("a", [_edge("a", "b")], tasks).to_dict()
        assert data["is_blocked"] is True
        assert data["blocked_by"][0]["id"] == "b"
        assert data["blocked_by_ids"] == ["b"]


# ── Traversal ─────────────────────────────────────────────


class TestTraversal:
    def test_upstream_depths(self) -> None:
        tasks = _tasks("t1", "t2", "t3")
        edges = [_edge("t1", "t2"), _edge("t2", "t3")]
        chain = get_upstream_chain("t1", edges, tasks)
        assert [(e.task.id, e.depth) for e in chain] == [("t2", 1), ("t3", 2)]
        assert chain[0].dependency_id == edges[0].id

    def test_downstream_depths(self) -> None:
        tasks = _tasks("t1", "t2", "t3")
        edges = [_edge("t1", "t2"), _edge("t2", "t3")]
        chain = get_downstream_chain("t3", edges, tasks)
        assert [(e.task.id, e.depth) for e in chain] == [("t2", 1), ("t1", 2)]

    def test_diamond_visits_each_task_once(self) -> None:
        tasks = _tasks("a", "b", "c", "d")
        edges = [
            _edge("a", "b"),
            _edge("a", "c"),
            _edge("b", "d"),
            _edge("c", "d"),
        ]
        chain = get_upstream_chain("a", edges, tasks)
        assert [(e.task.id, e.depth) for e in chain] == [
            ("b", 1),
            ("c", 1),
            ("d", 2),
        ]

    def test_corrupt_cycle_terminates(self) -> None:
        tasks = _tasks("a", "b")
        edges = [_edge("a", "b"), _edge("b", "a")]
        chain = get_upstream_chain("a", edges, tasks)
        assert [e.task.id for e in chain] == ["b"]

    def test_no_neighbours(self) -> None:
        assert get_upstream_chain("a", [], _tasks("a")) == []

    def test_reachable_ids(self) -> None:
        edges = [_edge("a", "b"), _edge("b", "c")]
        assert reachable_ids("a", edges, UPSTREAM) == {"b", "c"}
        assert reachable_ids("c", edges, DOWNSTREAM) == {"a", "b"}

    def test_unknown_direction(self) -> None:
        with pytest.raises(ValueError, match="sideways"):
            reachable_ids("a", [], "sideways")


class TestEligibleBlockers:
    def test_excludes_self_blockers_and_downstream(self) -> None:
        # b depends on a, c depends on b, a already depends on d
        tasks = _tasks("a", "b", "c", "d", "e")
        edges = [_edge("b", "a"), _edge("c", "b"), _edge("a", "d")]
        eligible = eligible_blockers("a", edges, tasks)
        assert [t.id for t in eligible] == ["e"]

    def test_upstream_of_upstream_is_eligible(self) -> None:
        tasks = _tasks("a", "b", "c")
        edges = [_edge("a", "b"), _edge("b", "c")]
        assert [t.id for t in eligible_blockers("a", edges, tasks)] == ["c"]

    def test_every_eligible_blocker_passes_cycle_check(self) -> None:
        tasks = _tasks("a", "b", "c", "d", "e", "f")
        edges = [
            _edge("b", "a"),
            _edge("c", "b"),
            _edge("d", "a"),
            _edge("a", "e"),
        ]
        for task in eligible_blockers("a", edges, tasks):
            assert would_create_cycle("a", task.id, edges).would_cycle is False


class TestFormatCyclePath:
    def test_names_and_closing_loop(self) -> None:
        tasks = [Task(id="1", name="Design"), Task(id="2", name="Build")]
        assert format_cycle_path(["2", "1"], tasks) == "Build → Design → Build"

    def test_unknown_ids_shown_raw(self) -> None:
        assert format_cycle_path(["x"], []) == "x → x"

    def test_empty(self) -> None:
        assert format_cycle_path([], []) == ""


# ── Bulk integrity check ──────────────────────────────────


class TestBlockedTasksInfo:
    def test_reports_blocked_subset_in_request_order(self) -> None:
        tasks = _tasks("a", "b", "c", "x", "y", completed=("y",))
        edges = [
            _edge("c", "x"),
            _edge("a", "x"),
            _edge("a", "b"),
            _edge("b", "y"),
        ]
        info = blocked_tasks_info(["c", "b", "a"], edges, tasks)
        assert [i.to_dict() for i in info] == [
            {"task_id": "c", "task_name": "C", "blocked_by_count": 1},
            {"task_id": "a", "task_name": "A", "blocked_by_count": 2},
        ]

    def test_duplicate_ids_reported_once(self) -> None:
        tasks = _tasks("a", "b")
        info = blocked_tasks_info(["a", "a"], [_edge("a", "b")], tasks)
        assert len(info) == 1

    def test_unknown_id_raises(self) -> None:
        with pytest.raises(TaskNotFoundError) as exc:
            blocked_tasks_info(["a", "ghost"], [], _tasks("a"))
        assert exc.value.details == {"task_ids": ["ghost"]}

    def test_blocked_task_ids(self) -> None:
        tasks = _tasks("a", "b", "c")
        assert blocked_task_ids(["a", "c"], [_edge("a", "b")], tasks) == {"a"}
