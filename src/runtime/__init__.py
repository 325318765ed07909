# path: src/runtime/__init__.py

"""
Runtime wiring package for the embodiment.

Holds entrypoints that stitch together:
- env (world profile loading)
- embodiment (WorldSession and its transport)
- monitoring (EventBus, JSONL logger, controller, TUI)

Usage:
    python -m runtime.agent_runtime_main --tui
"""
