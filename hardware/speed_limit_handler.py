"""
Speed Limit Handler for openHUD.

Looks up the speed limit for each GPS fix against the loaded city pack and
publishes the result for the render path.

Features:
- One store query per new GPS fix, never blocking on pack loads
- Over-limit flag from current speed vs. matched limit
- Speed derived from successive fixes when the GPS reports none
- Optional city tracking: reverse-geocodes the position and loads the
  matching city pack when the city changes
"""

import logging
import time
from typing import Any, Callable, Dict, Optional, Tuple

from utils.worker_base import BoundedQueueWorker
from speedlimit.geometry import haversine_distance
from speedlimit.packs import CityInfo, PackLocator, sanitize_city_name
from speedlimit.store import SpeedLimitStore, StoreState
from config import (
    DATA_DIR,
    ensure_pack_dir,
    SPEED_LIMIT_ENABLED,
    SPEED_LIMIT_PACK_DIRS,
    SPEED_LIMIT_UPDATE_INTERVAL_S,
    SPEED_LIMIT_CITY_RECHECK_DISTANCE_M,
    SPEED_LIMIT_CITY_RECHECK_INTERVAL_S,
    SPEED_LIMIT_MIN_MOVING_SPEED_MS,
    SPEED_LIMIT_DEFAULT_COUNTRY_CODE,
)

logger = logging.getLogger('openHUD.speed_limit')

CityLookup = Callable[[float, float], Optional[CityInfo]]


class SpeedLimitHandler(BoundedQueueWorker):
    """
    Speed limit handler consuming GPS snapshots.

    The position source is any object with get_snapshot() returning a
    snapshot whose data dict has 'has_fix', 'latitude', 'longitude' and
    optionally 'speed_kmh'.
    """

    def __init__(
        self,
        gps_handler,
        store: Optional[SpeedLimitStore] = None,
        city_lookup: Optional[CityLookup] = None,
        pack_locator: Optional[PackLocator] = None,
        update_interval_s: float = SPEED_LIMIT_UPDATE_INTERVAL_S,
    ):
        """
        Initialise speed limit handler.

        Args:
            gps_handler: Position source to poll for fixes
            store: Speed limit store (a new one is created if omitted)
            city_lookup: Optional reverse-geocoder, (lat, lon) -> CityInfo
            pack_locator: Where to find city packs (defaults to configured dirs)
            update_interval_s: Poll interval in seconds
        """
        super().__init__(queue_depth=2)
        self.gps_handler = gps_handler
        self.store = store if store is not None else SpeedLimitStore()
        self.city_lookup = city_lookup
        if pack_locator is None:
            if city_lookup is not None:
                ensure_pack_dir(DATA_DIR)
            pack_locator = PackLocator(SPEED_LIMIT_PACK_DIRS)
        self.pack_locator = pack_locator
        self.update_interval_s = update_interval_s
        self.enabled = SPEED_LIMIT_ENABLED

        # Latest result
        self.speed_limit_kmh: Optional[int] = None
        self.limit_source: Optional[str] = None
        self.match_distance_m: Optional[float] = None
        self.speed_kmh: Optional[float] = None
        self.over_limit = False

        # Previous fix (lat, lon, timestamp) for derived speed
        self._prev_fix: Optional[Tuple[float, float, float]] = None
        self._last_fix_time: Optional[float] = None

        # City tracking
        self.city: Optional[CityInfo] = None
        self._city_check_pos: Optional[Tuple[float, float]] = None
        self._city_check_time = 0.0

        # Error tracking
        self.consecutive_errors = 0
        self.max_consecutive_errors = 10

        self.store.add_listener(self._on_store_published)

    def load_pack(self, path) -> None:
        """Load a pack that has become available (e.g. after download)."""
        logger.info("Speed limit: loading pack %s", path)
        self.store.load(path)

    def stop(self):
        super().stop()
        self.store.stop()

    def _on_store_published(self, state: StoreState):
        count = len(state.index) if state.index is not None else 0
        logger.info("Speed limit: pack ready with %d samples (%s)", count, state.source_path)

    def _worker_loop(self):
        """Background thread polling the GPS and querying the store."""
        while self.running:
            try:
                snapshot = self.gps_handler.get_snapshot()

                if (
                    self.enabled
                    and snapshot
                    and snapshot.data.get('has_fix')
                    and snapshot.timestamp != self._last_fix_time
                ):
                    self._last_fix_time = snapshot.timestamp
                    self.process_fix(snapshot.data, snapshot.timestamp)
                    self.consecutive_errors = 0
                else:
                    self._publish_state()

                time.sleep(self.update_interval_s)

            except Exception as e:
                self.consecutive_errors += 1
                if self.consecutive_errors == 3:
                    logger.warning("Speed limit: Error: %s", e)
                elif self.consecutive_errors >= self.max_consecutive_errors:
                    logger.warning("Speed limit: Too many errors, continuing...")
                    self.consecutive_errors = 0
                time.sleep(self.update_interval_s)

    def process_fix(self, data: Dict[str, Any], timestamp: Optional[float] = None) -> Dict[str, Any]:
        """
        Look up the limit for one GPS fix and publish the result.

        Args:
            data: GPS snapshot data
            timestamp: Fix time in seconds (defaults to now)

        Returns:
            The published data dict
        """
        now = timestamp if timestamp is not None else time.time()
        lat = data.get('latitude', 0.0)
        lon = data.get('longitude', 0.0)

        self.speed_kmh = self._effective_speed_kmh(data.get('speed_kmh'), lat, lon, now)
        self._check_city(lat, lon, now)

        match = self.store.query_match(lat, lon)
        if match:
            self.speed_limit_kmh = match.speed_limit_kmh
            self.limit_source = match.source
            self.match_distance_m = match.distance_m
        else:
            self.speed_limit_kmh = None
            self.limit_source = None
            self.match_distance_m = None

        self.over_limit = (
            self.speed_limit_kmh is not None
            and self.speed_kmh is not None
            and self.speed_kmh > self.speed_limit_kmh
        )

        return self._publish_state()

    def _effective_speed_kmh(
        self, reported_kmh: Optional[float], lat: float, lon: float, now: float
    ) -> Optional[float]:
        """
        Reported speed if valid, else speed derived from the previous fix.

        Derived speeds under SPEED_LIMIT_MIN_MOVING_SPEED_MS count as stopped.
        """
        prev = self._prev_fix
        self._prev_fix = (lat, lon, now)

        if reported_kmh is not None and reported_kmh >= 0:
            return float(reported_kmh)
        if prev is None:
            return None

        dt = now - prev[2]
        if dt <= 0:
            return None
        speed_ms = haversine_distance(prev[0], prev[1], lat, lon) / dt
        if speed_ms <= SPEED_LIMIT_MIN_MOVING_SPEED_MS:
            return 0.0
        return speed_ms * 3.6

    def _check_city(self, lat: float, lon: float, now: float):
        """Re-run the city lookup when due and load the new city's pack."""
        if self.city_lookup is None:
            return

        if self._city_check_pos is not None:
            moved = haversine_distance(self._city_check_pos[0], self._city_check_pos[1], lat, lon)
            waited = now - self._city_check_time
            if (moved < SPEED_LIMIT_CITY_RECHECK_DISTANCE_M
                    and waited < SPEED_LIMIT_CITY_RECHECK_INTERVAL_S):
                return

        self._city_check_pos = (lat, lon)
        self._city_check_time = now

        try:
            info = self.city_lookup(lat, lon)
        except Exception as e:
            logger.warning("Speed limit: City lookup failed: %s", e)
            return
        if info is None:
            return
        if info.country_code is None and SPEED_LIMIT_DEFAULT_COUNTRY_CODE:
            info = CityInfo(info.city_name, SPEED_LIMIT_DEFAULT_COUNTRY_CODE)

        if self.city is not None and (
            sanitize_city_name(self.city.city_name) == sanitize_city_name(info.city_name)
        ):
            return

        self.city = info
        pack = self.pack_locator.find_pack(info)
        if pack is None:
            logger.info("Speed limit: No pack for %s", info.city_name)
            return
        logger.info("Speed limit: City changed to %s, loading %s", info.city_name, pack)
        self.store.load(pack)

    def _publish_state(self) -> Dict[str, Any]:
        data = {
            'speed_limit_kmh': self.speed_limit_kmh,
            'limit_source': self.limit_source,
            'match_distance_m': self.match_distance_m,
            'speed_kmh': self.speed_kmh,
            'over_limit': self.over_limit,
            'store_ready': self.store.is_ready,
            'sample_count': self.store.sample_count,
            'city': self.city.city_name if self.city else None,
        }
        self._publish_snapshot(data)
        return data
