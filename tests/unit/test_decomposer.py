"""Unit tests for feature decomposition."""

import pytest

from waveplan.catalog.models import Feature, FeatureKind, Size
from waveplan.tasks.decomposer import (
    OrderMode,
    TaskKind,
    choose_order_mode,
    decompose,
    estimate_task_size,
    task_id_for,
)


@pytest.fixture
def feature():
    return Feature(id="FEAT-001", name="Login", size=Size.L)


def test_normal_order(feature):
    """Test normal mode: implementation, audit, then tests."""
    tasks = decompose(feature, OrderMode.NORMAL)

    assert [t.kind for t in tasks] == [
        TaskKind.DATABASE,
        TaskKind.API,
        TaskKind.UI,
        TaskKind.INTEGRATION,
        TaskKind.REVIEW,
        TaskKind.TEST,
    ]
    assert tasks[0].id == "FEAT-001-DATABASE"
    assert tasks[-1].name == "Login - Testing"


def test_tdd_order(feature):
    """Test TDD mode puts the test task first."""
    tasks = decompose(feature, OrderMode.TDD)

    assert [t.kind for t in tasks] == [
        TaskKind.TEST,
        TaskKind.DATABASE,
        TaskKind.API,
        TaskKind.UI,
        TaskKind.INTEGRATION,
        TaskKind.REVIEW,
    ]
    assert tasks[0].name == "Login - Testing (TDD)"
    assert tasks[-1].name == "Login - Code Audit"


def test_order_mode_accepts_string(feature):
    tasks = decompose(feature, "tdd")
    assert tasks[0].kind == TaskKind.TEST


def test_tasks_form_linear_chain(feature):
    tasks = decompose(feature)

    assert tasks[0].blocked_by == []
    assert tasks[-1].blocks == []
    for prev, nxt in zip(tasks, tasks[1:]):
        assert nxt.blocked_by == [prev.id]
        assert prev.blocks == [nxt.id]


def test_task_ids_unique_and_stable(feature):
    tasks = decompose(feature)
    ids = [t.id for t in tasks]

    assert len(set(ids)) == 6
    assert ids == [t.id for t in decompose(feature)]
    assert task_id_for("X", TaskKind.INTEGRATION) == "X-INTEGRATION"


def test_references(feature):
    by_kind = {t.kind: t.references for t in decompose(feature)}

    assert by_kind[TaskKind.DATABASE] == ["§4"]
    assert by_kind[TaskKind.API] == ["§5", "§7", "§9"]
    assert by_kind[TaskKind.UI] == ["§6"]
    assert by_kind[TaskKind.INTEGRATION] == ["§5", "§6"]
    assert by_kind[TaskKind.REVIEW] == ["All"]
    assert by_kind[TaskKind.TEST] == ["§10"]


@pytest.mark.parametrize(
    "profile_type,kind,expected",
    [
        ("api", FeatureKind.PROPRIETARY, OrderMode.TDD),
        ("api", FeatureKind.COMMON, OrderMode.TDD),
        ("cli", None, OrderMode.TDD),
        ("app", FeatureKind.COMMON, OrderMode.TDD),
        ("app", FeatureKind.PROPRIETARY, OrderMode.NORMAL),
        ("app", None, OrderMode.NORMAL),
        ("lp", FeatureKind.COMMON, OrderMode.NORMAL),
        ("hp", FeatureKind.PROPRIETARY, OrderMode.NORMAL),
    ],
)
def test_choose_order_mode(profile_type, kind, expected):
    assert choose_order_mode(profile_type, kind) == expected


@pytest.mark.parametrize(
    "feature_size,kind,expected",
    [
        (Size.XL, TaskKind.DATABASE, Size.M),
        (Size.L, TaskKind.DATABASE, Size.S),
        (Size.XL, TaskKind.REVIEW, Size.M),
        (Size.M, TaskKind.REVIEW, Size.S),
        (Size.S, TaskKind.TEST, Size.S),
        (Size.XL, TaskKind.TEST, Size.M),
        (Size.L, TaskKind.API, Size.L),
        (Size.S, TaskKind.UI, Size.S),
    ],
)
def test_estimate_task_size(feature_size, kind, expected):
    assert estimate_task_size(feature_size, kind) == expected
