# utils/logger.py
import logging
import sys
from typing import Any, Dict, Optional, Union

LevelLike = Union[int, str]

DEFAULT_COMPONENT_LEVELS: Dict[str, LevelLike] = {
    'armkin.api': logging.INFO,
    'armkin.core.ik.solver': logging.INFO,
    'armkin.core.ik.mimic': logging.INFO,
    'armkin.core.drivers.pybullet_driver': logging.INFO,
}


def _level(value: LevelLike) -> int:
    if isinstance(value, int):
        return value
    level = logging.getLevelName(str(value).upper())
    if not isinstance(level, int):
        raise ValueError(f"Unknown logging level {value!r}")
    return level


def setup_logging(level: LevelLike = logging.INFO, component_levels: Optional[Dict[str, LevelLike]] = None):
    """
    Set up logging configuration for the entire application.
    This configures the root logger with a formatter that includes the logger name.

    :param level: Default logging level for the root logger.
    :param component_levels: Dict of logger names to their logging levels,
        e.g., {'armkin.core.ik.solver': 'DEBUG'}
    """
    logging.basicConfig(
        level=_level(level),
        format="%(asctime)s [%(levelname)s] %(name)s: %(message)s",
        datefmt="%H:%M:%S",
        stream=sys.stdout
    )

    levels = dict(DEFAULT_COMPONENT_LEVELS)
    if component_levels:
        levels.update(component_levels)
    for component, comp_level in levels.items():
        logging.getLogger(component).setLevel(_level(comp_level))


def setup_logging_from_config(logging_config: Dict[str, Any]):
    """Apply the `logging` section of the YAML config."""
    setup_logging(
        level=logging_config.get('level', 'INFO'),
        component_levels=logging_config.get('components') or {},
    )
