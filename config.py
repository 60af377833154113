"""
Configuration settings for openHUD.
Contains constants for data storage and the speed limit feature.

Organised into logical sections:
1. Data Storage (USB preferred, local fallback)
2. Features - Speed Limit (packs, update rate, city tracking)

Core lookup constants (sample caps, match radius, default limits) live in
speedlimit/config.py.
"""

import logging
import os

logger = logging.getLogger("openHUD.config")

# ==============================================================================
# APPLICATION VERSION
# ==============================================================================
APP_VERSION = "0.3.0"

# Project root for asset paths
_PROJECT_ROOT = os.path.dirname(os.path.abspath(__file__))

# Bundled packs shipped with the application (read-only)
BUNDLED_PACKS_DIR = os.path.join(_PROJECT_ROOT, "assets", "packs")

# ==============================================================================
#                        1. DATA STORAGE
# ==============================================================================
# USB mount point for persistent data storage
USB_MOUNT_PATH = "/mnt/usb"
USB_DATA_DIR = os.path.join(USB_MOUNT_PATH, ".openhud")

# Local fallback (used if USB not mounted)
LOCAL_DATA_DIR = os.path.expanduser("~/.openhud")


def _is_usb_mounted() -> bool:
    """Check if USB drive is mounted at the expected path."""
    return os.path.ismount(USB_MOUNT_PATH)


def get_data_dir() -> str:
    """
    Get the base data directory for persistent storage.

    Returns USB path if mounted, otherwise local fallback.
    """
    if _is_usb_mounted():
        return USB_DATA_DIR
    return LOCAL_DATA_DIR


def ensure_pack_dir(data_dir: str) -> bool:
    """
    Create the speed limit pack directory under data_dir if missing.

    Args:
        data_dir: The data directory to populate

    Returns:
        True if the pack directory exists afterwards
    """
    pack_dir = os.path.join(data_dir, "packs")
    if os.path.isdir(pack_dir):
        return True
    try:
        os.makedirs(pack_dir, exist_ok=True)
    except OSError as e:
        logger.error("Could not create pack directory: %s", e)
        return False
    logger.info("Created pack directory %s", pack_dir)
    return True


# Resolve data directory at import time
DATA_DIR = get_data_dir()

# ==============================================================================
#                        2. FEATURES - SPEED LIMIT
# ==============================================================================
SPEED_LIMIT_ENABLED = True  # Set to False to disable speed limit lookup

# City packs are mounted here by the pack downloader
SPEED_LIMIT_PACK_DIR = os.path.join(DATA_DIR, "packs")

# Searched in order when resolving a city to a pack file
SPEED_LIMIT_PACK_DIRS = [SPEED_LIMIT_PACK_DIR, BUNDLED_PACKS_DIR]

# How often the handler polls the position source (seconds)
SPEED_LIMIT_UPDATE_INTERVAL_S = 0.2

# City tracking: re-run the city lookup after moving this far or this long
SPEED_LIMIT_CITY_RECHECK_DISTANCE_M = 2000.0
SPEED_LIMIT_CITY_RECHECK_INTERVAL_S = 300.0

# Derived speeds below this are treated as standing still (m/s)
SPEED_LIMIT_MIN_MOVING_SPEED_MS = 0.3

# Country code used for pack tags when the city lookup gives none
SPEED_LIMIT_DEFAULT_COUNTRY_CODE = None
