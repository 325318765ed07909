# tests/test_action_executor.py

from __future__ import annotations

from typing import Any, List, Optional, Tuple

import pytest

from embodiment.actions import ActionExecutor, ActionTracer
from embodiment.errors import PreconditionError, TransientIOError
from interfaces.types import Action


class RecordingSurface:
    """ControlSurface double that records calls and can be told to fail."""

    def __init__(self) -> None:
        self.calls: List[Tuple[str, Tuple[Any, ...]]] = []
        self.fail: Optional[Exception] = None
        self.position: Optional[List[float]] = [1.0, 0.0, 2.0]
        self.crouching = False

    def _call(self, name: str, *args: Any) -> None:
        self.calls.append((name, args))
        if self.fail is not None:
            raise self.fail

    def navigate_to(self, x: float, z: float) -> None:
        self._call("navigate_to", x, z)

    def stop_navigation(self) -> bool:
        self._call("stop_navigation")
        return True

    def start_random_walk(self, interval_ms=None, max_distance=None) -> None:
        self._call("start_random_walk", interval_ms, max_distance)

    def stop_random_walk(self) -> bool:
        self._call("stop_random_walk")
        return False

    def jump(self) -> bool:
        self._call("jump")
        return True

    def toggle_crouch(self) -> bool:
        self._call("toggle_crouch")
        self.crouching = not self.crouching
        return self.crouching

    def set_key(self, name: str, is_down: bool) -> None:
        self._call("set_key", name, is_down)

    def use_item(self, slot: int) -> None:
        self._call("use_item", slot)

    def change_name(self, name: str) -> None:
        self._call("change_name", name)

    def get_agent_position(self) -> Optional[List[float]]:
        return self.position


@pytest.fixture
def surface() -> RecordingSurface:
    return RecordingSurface()


@pytest.fixture
def executor(surface: RecordingSurface) -> ActionExecutor:
    return ActionExecutor(surface)


def test_navigate_to_coerces_coordinates(executor, surface):
    result = executor.execute(Action(type="navigate_to", params={"x": "3", "z": 4}))

    assert result.success is True
    assert result.details == {"target": [3.0, 4.0]}
    assert surface.calls == [("navigate_to", (3.0, 4.0))]


@pytest.mark.parametrize(
    "params",
    [{}, {"x": 1.0}, {"x": "north", "z": 1.0}, {"x": None, "z": 1.0}],
)
def test_navigate_to_rejects_bad_params(executor, surface, params):
    result = executor.execute(Action(type="navigate_to", params=params))

    assert result.success is False
    assert result.error == "invalid_params"
    assert surface.calls == []


def test_stop_actions_report_whether_anything_stopped(executor):
    nav = executor.execute(Action(type="stop_navigation"))
    walk = executor.execute(Action(type="stop_random_walk"))

    assert nav.success and nav.details == {"applied": True}
    assert walk.success and walk.details == {"applied": False}


def test_random_walk_params_are_optional(executor, surface):
    assert executor.execute(Action(type="start_random_walk")).success
    assert executor.execute(
        Action(type="start_random_walk", params={"interval_ms": 2000, "max_distance": "4.5"})
    ).success

    assert surface.calls == [
        ("start_random_walk", (None, None)),
        ("start_random_walk", (2000.0, 4.5)),
    ]


def test_toggle_crouch_reports_new_state(executor):
    first = executor.execute(Action(type="toggle_crouch"))
    second = executor.execute(Action(type="toggle_crouch"))

    assert first.details == {"crouching": True}
    assert second.details == {"crouching": False}


def test_set_key_and_use_item(executor, surface):
    assert executor.execute(Action(type="set_key", params={"name": "keyW", "down": True})).success
    assert executor.execute(Action(type="use_item", params={"slot": "2"})).success

    assert surface.calls == [("set_key", ("keyW", True)), ("use_item", (2,))]
    assert executor.execute(Action(type="set_key", params={})).error == "invalid_params"
    assert executor.execute(Action(type="use_item", params={"slot": "x"})).error == "invalid_params"


def test_change_name_strips_whitespace(executor, surface):
    result = executor.execute(Action(type="change_name", params={"name": "  Wanderer "}))

    assert result.details == {"name": "Wanderer"}
    assert surface.calls == [("change_name", ("Wanderer",))]
    assert executor.execute(Action(type="change_name", params={"name": "   "})).error == "invalid_params"


def test_unknown_action_is_unsupported(executor):
    result = executor.execute(Action(type="fly"))

    assert result.success is False
    assert result.error == "unsupported_action"
    assert result.details == {"action_type": "fly"}


def test_non_mapping_params_are_invalid(executor):
    result = executor.execute(Action(type="jump", params=["up"]))  # type: ignore[arg-type]

    assert result.error == "invalid_params"
    assert result.details["reason"] == "params_not_mapping"


@pytest.mark.parametrize(
    "exc, code",
    [
        (PreconditionError("world session is disconnected"), "precondition_failed"),
        (TransientIOError("socket closed"), "transient_io"),
        (ValueError("Invalid item slot"), "invalid_params"),
        (RuntimeError("boom"), "execution_exception"),
    ],
)
def test_surface_errors_map_to_error_codes(surface, exc, code):
    executor = ActionExecutor(surface)
    surface.fail = exc

    result = executor.execute(Action(type="jump"))

    assert result.success is False
    assert result.error == code
    assert result.details["action_type"] == "jump"


def test_tracer_records_each_execution(surface):
    tracer = ActionTracer(max_records=2)
    executor = ActionExecutor(surface, tracer=tracer)

    executor.execute(Action(type="jump"))
    surface.position = None
    executor.execute(Action(type="fly"))
    executor.execute(Action(type="navigate_to", params={"x": 1, "z": 2}))

    records = tracer.get_records()
    assert [r.action_type for r in records] == ["fly", "navigate_to"]
    assert records[0].success is False and records[0].error == "unsupported_action"
    assert records[0].position is None
    assert records[1].params == {"x": 1, "z": 2}
    assert all(r.duration_s >= 0.0 for r in records)


def test_supported_actions_lists_every_handler(executor):
    assert executor.supported_actions() == sorted(
        [
            "change_name",
            "jump",
            "navigate_to",
            "set_key",
            "start_random_walk",
            "stop_navigation",
            "stop_random_walk",
            "toggle_crouch",
            "use_item",
        ]
    )
