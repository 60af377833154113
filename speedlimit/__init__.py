"""
Offline speed limit lookup for openHUD.

Loads per-city road packs (SQLite, WKB or WKT road geometry) into an
in-memory sample index and answers "what is the limit here?" for GPS fixes.
"""

from speedlimit.index import RoadSample, SampleIndex, SpeedLimitMatch
from speedlimit.limits import parse_maxspeed, default_limit_for
from speedlimit.packs import CityInfo, PackLocator
from speedlimit.store import SpeedLimitStore, StoreState, StoreStatus, PackOpenError

__all__ = [
    'RoadSample',
    'SampleIndex',
    'SpeedLimitMatch',
    'parse_maxspeed',
    'default_limit_for',
    'CityInfo',
    'PackLocator',
    'SpeedLimitStore',
    'StoreState',
    'StoreStatus',
    'PackOpenError',
]
