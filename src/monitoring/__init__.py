# src/monitoring/__init__.py
"""
Monitoring for the embodiment runtime.

- bus:           in-process EventBus for MonitoringEvents and ControlCommands
- events:        event and command types
- logger:        JSONL file logger + log_event helper
- controller:    SessionController applying ControlCommands to a session
- dashboard_tui: rich live dashboard
"""
