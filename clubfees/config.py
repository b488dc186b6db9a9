"""Club configuration management."""

import logging
from functools import lru_cache
from pathlib import Path

from .schemas import ClubConfig
from .utils import load_json

logger = logging.getLogger('clubfees.config')

CONFIG_PATH = Path(__file__).parent.parent / 'data' / 'club_config.json'


@lru_cache(maxsize=1)
def get_config() -> ClubConfig:
    """
    Load club configuration from data/club_config.json.

    Configuration is cached after first load. A missing file falls back to
    the built-in defaults (late fee 10, video fee 2, fixed denominator 90).

    Raises:
        ValueError: If the config file has an invalid structure
    """
    if not CONFIG_PATH.exists():
        logger.warning(f'Config file not found at {CONFIG_PATH}, using defaults')
        return ClubConfig()
    return load_json(CONFIG_PATH, schema=ClubConfig)


def get_base_fee_rates() -> tuple[float, float]:
    """Get (late_fee_rate, video_fee_rate) used for new matches."""
    config = get_config()
    return config.default_late_fee_rate, config.default_video_fee_rate


def get_fixed_total_time_units() -> float:
    """Get the denominator used for spreadsheet-imported matches."""
    return get_config().fixed_total_time_units


def get_data_dir() -> Path:
    """Get the directory holding match documents."""
    return Path(get_config().data_dir)


def clear_config_cache() -> None:
    """
    Clear the configuration cache.

    Use this if the config file is modified during runtime.
    """
    get_config.cache_clear()
