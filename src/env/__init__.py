# src/env/__init__.py
"""World profile configuration: schema dataclasses and the YAML loader."""
