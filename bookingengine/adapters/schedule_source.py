"""
Adapters providing the weekly business-hours document.
"""

import logging
from pathlib import Path
from typing import Any, Optional

import yaml

from ..config import SCHEDULE_CONFIG_KEY

logger = logging.getLogger(__name__)


class StaticScheduleSource:
    """Serves a document held in memory, e.g. the ``schedule`` section of config.yaml."""

    def __init__(self, document: Any = None) -> None:
        self.document = document

    def load_weekly_schedule(self) -> Any:
        return self.document


class YamlScheduleSource:
    """
    Reads the weekly schedule from a YAML (or JSON) file on every call.

    The file may hold the weekday mapping directly or nest it under the
    ``schedule.weekly`` key. Read errors are logged and reported as a missing
    document so availability falls back instead of failing.
    """

    def __init__(self, schedule_path: Path) -> None:
        self.schedule_path = schedule_path

    def load_weekly_schedule(self) -> Optional[Any]:
        try:
            with open(self.schedule_path, "r", encoding="utf-8") as f:
                data = yaml.safe_load(f)
        except (OSError, yaml.YAMLError) as exc:
            logger.warning("Could not read schedule file %s: %s", self.schedule_path, exc)
            return None

        if isinstance(data, dict) and SCHEDULE_CONFIG_KEY in data:
            return data[SCHEDULE_CONFIG_KEY]
        return data
