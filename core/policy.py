"""
Policy Configuration Module

Provides centralized defaults for credit assessment, read from the
environment at call time.

Key settings:
- Unit system used when a caller does not pass one (IP)
- Conflict resolution strategy used when a policy omits one (priority)
- Score given to documents that match no priority table entry (0)
- Optional alternative credit catalog file
- Log level and format

Example usage:
    from core.policy import get_settings

    settings = get_settings()
    if settings['unit_system'] == 'SI':
        # Metric thresholds apply
        pass
"""

import logging
import os
from typing import Dict, Any

logger = logging.getLogger(__name__)


# Default policy values
UNIT_SYSTEM_DEFAULT = "IP"
RESOLUTION_STRATEGY_DEFAULT = "priority"
DEFAULT_DOCUMENT_PRIORITY_DEFAULT = 0.0
LOG_LEVEL_DEFAULT = "INFO"
LOG_FORMAT_DEFAULT = "json"

VALID_UNIT_SYSTEMS = ("IP", "SI")
VALID_RESOLUTION_STRATEGIES = ("priority", "latest", "manual")

# Built-in document priorities, matched against document labels by the
# longest key found in the (normalized) label. Higher wins.
DEFAULT_DOCUMENT_PRIORITIES: Dict[str, float] = {
    "calculation": 90,
    "energy model": 85,
    "equipment schedule": 80,
    "schedule": 75,
    "submittal": 70,
    "commissioning": 65,
    "specification": 60,
    "drawing": 50,
    "narrative": 40,
    "form": 30,
    "email": 10,
}


def _env_choice(name: str, default: str, choices) -> str:
    raw = os.environ.get(name, default).strip()
    for choice in choices:
        if raw.lower() == choice.lower():
            return choice
    logger.warning(f"Ignoring invalid {name}={raw!r}; using {default}")
    return default


def _env_float(name: str, default: float) -> float:
    raw = os.environ.get(name)
    if raw is None or raw.strip() == "":
        return default
    try:
        return float(raw)
    except ValueError:
        logger.warning(f"Ignoring invalid {name}={raw!r}; using {default}")
        return default


def get_settings() -> Dict[str, Any]:
    """
    Get current policy settings.

    Returns:
        Dictionary containing all settings with current values

    Example:
        >>> settings = get_settings()
        >>> print(settings['resolution_strategy'])
        priority
    """
    return {
        'unit_system': _env_choice('CREDITKIT_UNIT_SYSTEM', UNIT_SYSTEM_DEFAULT, VALID_UNIT_SYSTEMS),
        'resolution_strategy': _env_choice(
            'CREDITKIT_RESOLUTION_STRATEGY', RESOLUTION_STRATEGY_DEFAULT, VALID_RESOLUTION_STRATEGIES
        ),
        'default_document_priority': _env_float(
            'CREDITKIT_DEFAULT_DOCUMENT_PRIORITY', DEFAULT_DOCUMENT_PRIORITY_DEFAULT
        ),
        'catalog_path': os.environ.get('CREDITKIT_CATALOG_PATH') or None,
        'log_level': os.environ.get('CREDITKIT_LOG_LEVEL', LOG_LEVEL_DEFAULT).upper(),
        'log_format': os.environ.get('CREDITKIT_LOG_FORMAT', LOG_FORMAT_DEFAULT).lower(),
    }


def get_default_unit_system() -> str:
    """Unit system applied when none is given (IP unless overridden)."""
    return get_settings()['unit_system']


def get_default_resolution_strategy() -> str:
    """Conflict resolution strategy applied when a policy omits one."""
    return get_settings()['resolution_strategy']


def get_default_document_priority() -> float:
    """Score for documents matching no priority table entry."""
    return get_settings()['default_document_priority']


def get_policy_summary() -> str:
    """
    Get a human-readable summary of current policy settings.

    Returns:
        String summary of policy configuration
    """
    settings = get_settings()
    status = [
        f"Unit system: {settings['unit_system']}",
        f"Resolution strategy: {settings['resolution_strategy']}",
        f"Unmatched document priority: {settings['default_document_priority']:g}",
        f"Catalog: {settings['catalog_path'] or 'built-in'}",
    ]
    return " | ".join(status)
