# src/embodiment/actions.py
"""
Action execution for the embodiment.

Translates interfaces.types.Action into calls on the session's control
surface and reports the outcome as an ActionResult.

Design constraints:
- One execute() call per logical operation; it never raises.
- Explicit, structured failures:
    - invalid_params
    - unsupported_action
    - precondition_failed   (no embodiment / pose / client)
    - transient_io          (send failed; retry later)
    - execution_exception   (anything else)
- Boolean refusals (jump on cooldown, crouch while jumping) succeed with
  details["applied"] = False; they are precedence outcomes, not errors.
"""

from __future__ import annotations

import logging
import time
from collections import deque
from dataclasses import dataclass
from time import perf_counter
from typing import Any, Callable, Deque, Dict, List, Mapping, Optional, Protocol

from interfaces.types import Action, ActionResult

from .errors import PreconditionError, TransientIOError

log = logging.getLogger(__name__)


class ControlSurface(Protocol):
    """The part of WorldSession that actions drive."""

    def navigate_to(self, x: float, z: float) -> None: ...

    def stop_navigation(self) -> bool: ...

    def start_random_walk(
        self, interval_ms: Optional[float] = None, max_distance: Optional[float] = None
    ) -> None: ...

    def stop_random_walk(self) -> bool: ...

    def jump(self) -> bool: ...

    def toggle_crouch(self) -> bool: ...

    def set_key(self, name: str, is_down: bool) -> None: ...

    def use_item(self, slot: int) -> None: ...

    def change_name(self, name: str) -> None: ...

    def get_agent_position(self) -> Optional[List[float]]: ...


# ---------------------------------------------------------------------------
# Tracing
# ---------------------------------------------------------------------------


@dataclass
class ActionTraceRecord:
    """Structured record of a single action execution."""

    timestamp: float           # wall-clock time (time.time())
    duration_s: float

    action_type: Optional[str]
    params: Dict[str, Any]

    success: bool
    error: Optional[str]

    position: Optional[List[float]]   # embodiment position at execution time


class ActionTracer:
    """
    Rolling buffer of ActionTraceRecord entries plus one log line per action.
    """

    def __init__(
        self,
        *,
        logger: Optional[logging.Logger] = None,
        max_records: int = 1000,
    ) -> None:
        self._logger = logger or logging.getLogger("embodiment.action")
        self._records: Deque[ActionTraceRecord] = deque(maxlen=max_records)

    def record(
        self,
        *,
        action: Action,
        result: ActionResult,
        duration_s: float,
        position: Optional[List[float]] = None,
    ) -> ActionTraceRecord:
        record = ActionTraceRecord(
            timestamp=time.time(),
            duration_s=duration_s,
            action_type=action.type,
            params=dict(action.params or {}),
            success=result.success,
            error=result.error,
            position=list(position) if position is not None else None,
        )
        self._records.append(record)
        self._logger.info(
            "action_exec type=%s success=%s error=%s duration=%.4fs pos=%s",
            record.action_type,
            record.success,
            record.error,
            record.duration_s,
            record.position,
        )
        return record

    def get_records(self) -> List[ActionTraceRecord]:
        return list(self._records)


# ---------------------------------------------------------------------------
# Executor
# ---------------------------------------------------------------------------


class ActionExecutor:
    """
    Map Actions onto a ControlSurface.

    Public contract:
      execute(action) -> ActionResult
    """

    def __init__(
        self,
        surface: ControlSurface,
        *,
        tracer: Optional[ActionTracer] = None,
    ) -> None:
        self._surface = surface
        self._tracer = tracer
        self._handlers: Dict[str, Callable[[Mapping[str, Any]], ActionResult]] = {
            "navigate_to": self._navigate_to,
            "stop_navigation": self._stop_navigation,
            "start_random_walk": self._start_random_walk,
            "stop_random_walk": self._stop_random_walk,
            "jump": self._jump,
            "toggle_crouch": self._toggle_crouch,
            "set_key": self._set_key,
            "use_item": self._use_item,
            "change_name": self._change_name,
        }

    def supported_actions(self) -> List[str]:
        return sorted(self._handlers)

    def execute(self, action: Action) -> ActionResult:
        atype = action.type
        params = action.params if action.params is not None else {}
        start = perf_counter()

        log.debug("ActionExecutor.execute start type=%s params=%r", atype, params)

        if not isinstance(params, Mapping):
            result = ActionResult(
                success=False,
                error="invalid_params",
                details={"reason": "params_not_mapping", "action_type": atype},
            )
        else:
            handler = self._handlers.get(atype)
            if handler is None:
                result = ActionResult(
                    success=False,
                    error="unsupported_action",
                    details={"action_type": atype},
                )
            else:
                result = self._run(atype, handler, params)

        if self._tracer is not None:
            try:
                position = self._surface.get_agent_position()
            except Exception:
                log.exception("Could not read agent position for the action trace")
                position = None
            self._tracer.record(
                action=action,
                result=result,
                duration_s=perf_counter() - start,
                position=position,
            )
        return result

    def _run(
        self,
        atype: str,
        handler: Callable[[Mapping[str, Any]], ActionResult],
        params: Mapping[str, Any],
    ) -> ActionResult:
        try:
            return handler(params)
        except PreconditionError as exc:
            log.warning("Action %s rejected: %s", atype, exc)
            return ActionResult(
                success=False,
                error="precondition_failed",
                details={"action_type": atype, "reason": str(exc)},
            )
        except TransientIOError as exc:
            log.warning("Action %s hit a transient I/O error: %s", atype, exc)
            return ActionResult(
                success=False,
                error="transient_io",
                details={"action_type": atype, "reason": str(exc)},
            )
        except ValueError as exc:
            return ActionResult(
                success=False,
                error="invalid_params",
                details={"action_type": atype, "reason": str(exc)},
            )
        except Exception as exc:
            log.exception("ActionExecutor.execute raised unexpectedly for type=%s", atype)
            return ActionResult(
                success=False,
                error="execution_exception",
                details={"action_type": atype, "exception": repr(exc)},
            )

    # ------------------------------------------------------------------
    # Action handlers
    # ------------------------------------------------------------------

    def _navigate_to(self, params: Mapping[str, Any]) -> ActionResult:
        try:
            x = float(params["x"])
            z = float(params["z"])
        except (KeyError, TypeError, ValueError):
            return _invalid("missing_or_non_numeric_xz", params)
        self._surface.navigate_to(x, z)
        return ActionResult(success=True, error=None, details={"target": [x, z]})

    def _stop_navigation(self, params: Mapping[str, Any]) -> ActionResult:
        stopped = self._surface.stop_navigation()
        return ActionResult(success=True, error=None, details={"applied": stopped})

    def _start_random_walk(self, params: Mapping[str, Any]) -> ActionResult:
        try:
            interval = params.get("interval_ms")
            distance = params.get("max_distance")
            interval = float(interval) if interval is not None else None
            distance = float(distance) if distance is not None else None
        except (TypeError, ValueError):
            return _invalid("non_numeric_walk_config", params)
        self._surface.start_random_walk(interval, distance)
        return ActionResult(success=True, error=None)

    def _stop_random_walk(self, params: Mapping[str, Any]) -> ActionResult:
        stopped = self._surface.stop_random_walk()
        return ActionResult(success=True, error=None, details={"applied": stopped})

    def _jump(self, params: Mapping[str, Any]) -> ActionResult:
        applied = self._surface.jump()
        return ActionResult(success=True, error=None, details={"applied": applied})

    def _toggle_crouch(self, params: Mapping[str, Any]) -> ActionResult:
        crouching = self._surface.toggle_crouch()
        return ActionResult(success=True, error=None, details={"crouching": crouching})

    def _set_key(self, params: Mapping[str, Any]) -> ActionResult:
        name = params.get("name")
        if not isinstance(name, str) or not name:
            return _invalid("missing_key_name", params)
        is_down = bool(params.get("down", params.get("is_down", False)))
        self._surface.set_key(name, is_down)
        return ActionResult(success=True, error=None, details={"name": name, "down": is_down})

    def _use_item(self, params: Mapping[str, Any]) -> ActionResult:
        try:
            slot = int(params["slot"])
        except (KeyError, TypeError, ValueError):
            return _invalid("missing_or_non_integer_slot", params)
        self._surface.use_item(slot)
        return ActionResult(success=True, error=None, details={"slot": slot})

    def _change_name(self, params: Mapping[str, Any]) -> ActionResult:
        name = params.get("name")
        if not isinstance(name, str) or not name.strip():
            return _invalid("missing_name", params)
        self._surface.change_name(name.strip())
        return ActionResult(success=True, error=None, details={"name": name.strip()})


def _invalid(reason: str, params: Mapping[str, Any]) -> ActionResult:
    return ActionResult(
        success=False,
        error="invalid_params",
        details={"reason": reason, "params": dict(params)},
    )


__all__ = [
    "ActionExecutor",
    "ActionTracer",
    "ActionTraceRecord",
    "ControlSurface",
]
