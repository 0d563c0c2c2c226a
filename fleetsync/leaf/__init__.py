"""
Leaf

Holds the configuration pushed by the relay and runs tasks against it.
"""

from .holder import ConfigHolder, ParsedJSON, RawText, TaskResult
from .service import create_app

__all__ = ["ConfigHolder", "ParsedJSON", "RawText", "TaskResult", "create_app"]
