"""
Speed limit store: pack ingestion and nearest-road queries.

Ingestion runs on a single background worker thread. Each load opens the
pack read-only, resolves its columns, streams every road row through the
geometry decoder and publishes a finished SampleIndex by swapping one
reference. Queries never wait for a load: they read whichever state is
currently published.

Usage:
    store = SpeedLimitStore()
    store.load("/mnt/usb/.openhud/packs/Istanbul.sqlite")
    ...
    limit = store.query(41.0082, 28.9784)  # None until the pack is ready
"""

import logging
import queue
import sqlite3
import threading
import time
from dataclasses import dataclass
from enum import Enum
from pathlib import Path
from typing import Callable, List, Optional, Union

from .config import (
    ROADS_TABLE,
    MAX_SAMPLES_PER_LINE,
    SAMPLE_INDEX_CAPACITY,
    MATCH_RADIUS_M,
)
from .decoder import decode_geometry
from .index import SampleIndex, SampleIndexBuilder, SpeedLimitMatch
from .limits import parse_maxspeed
from .schema import NoGeometryColumn, detect_roads_schema

logger = logging.getLogger('openHUD.store')

PathLike = Union[str, Path]

_STOP = object()


class PackOpenError(Exception):
    """A pack file could not be opened or is not a readable database."""


class StoreStatus(Enum):
    NOT_READY = "not_ready"
    READY = "ready"


@dataclass(frozen=True)
class StoreState:
    """Published store state. Replaced as a whole, never modified."""
    status: StoreStatus
    index: Optional[SampleIndex] = None
    source_path: Optional[str] = None
    loaded_at: Optional[float] = None  # Unix timestamp of publication

    @property
    def is_ready(self) -> bool:
        return self.status is StoreStatus.READY


NOT_READY = StoreState(StoreStatus.NOT_READY)


def _road_class(value) -> Optional[str]:
    """Highway label, or None when missing or blank."""
    if value is None:
        return None
    text = str(value)
    return text if text.strip() else None


def _decode_text(raw: bytes) -> str:
    # Invalid UTF-8 becomes U+FFFD instead of failing the row fetch
    return raw.decode("utf-8", "replace")


def _open_readonly(path: PathLike) -> sqlite3.Connection:
    uri = Path(path).resolve().as_uri() + "?mode=ro"
    conn = sqlite3.connect(uri, uri=True, check_same_thread=False)
    conn.text_factory = _decode_text
    return conn


def build_sample_index(
    path: PathLike,
    table: str = ROADS_TABLE,
    max_samples_per_line: int = MAX_SAMPLES_PER_LINE,
    capacity: int = SAMPLE_INDEX_CAPACITY,
) -> SampleIndex:
    """
    Read a pack file into a new SampleIndex.

    A pack without a usable geometry column gives an empty index. Rows whose
    geometry cannot be decoded contribute nothing; a read error part way
    through the table keeps the samples gathered so far. Text that is not
    valid UTF-8 is decoded with replacement characters.

    Raises:
        PackOpenError: if the file cannot be opened as a database
    """
    start = time.monotonic()
    try:
        conn = _open_readonly(path)
    except sqlite3.Error as e:
        raise PackOpenError(f"Could not open pack {path}: {e}") from e

    try:
        try:
            schema = detect_roads_schema(conn, table)
        except NoGeometryColumn as e:
            logger.warning("Pack %s: %s, no samples loaded", path, e)
            return SampleIndex.empty()
        except sqlite3.Error as e:
            raise PackOpenError(f"Could not read pack {path}: {e}") from e

        builder = SampleIndexBuilder(capacity)
        rows = 0
        try:
            for maxspeed, highway, geometry in conn.execute(schema.select_sql()):
                rows += 1
                points = decode_geometry(geometry, max_samples_per_line)
                if points:
                    builder.add_road(points, parse_maxspeed(maxspeed), _road_class(highway))
                if builder.is_full:
                    logger.info("Pack %s: sample capacity %d reached", path, capacity)
                    break
        except sqlite3.Error as e:
            logger.warning("Pack %s: read error after %d rows: %s", path, rows, e)

        index = builder.build()
    finally:
        conn.close()

    logger.info(
        "Loaded %d samples from %d roads in %.2fs (%s)",
        len(index), rows, time.monotonic() - start, path,
    )
    return index


class SpeedLimitStore:
    """
    Holds the current speed limit index and answers position queries.

    Thread model:
    - load() hands the path to a single worker thread; loads run one at a
      time in submission order
    - load_sync() runs the same pipeline on the calling thread
    - query() runs on the caller's thread and never blocks
    - Publishing replaces the state reference in one assignment, so a query
      sees either the previous index or the new one in full

    If loads overlap (load_sync from several threads), the one that finishes
    last wins.
    """

    def __init__(
        self,
        table: str = ROADS_TABLE,
        max_samples_per_line: int = MAX_SAMPLES_PER_LINE,
        capacity: int = SAMPLE_INDEX_CAPACITY,
        match_radius_m: float = MATCH_RADIUS_M,
    ):
        self.table = table
        self.max_samples_per_line = max_samples_per_line
        self.capacity = capacity
        self.match_radius_m = match_radius_m

        self._state: StoreState = NOT_READY
        self._publish_lock = threading.Lock()
        self._listeners: List[Callable[[StoreState], None]] = []

        # Diagnostic from the most recent failed load, cleared on success
        self.last_error: Optional[str] = None

        self._requests: "queue.Queue" = queue.Queue()
        self._worker: Optional[threading.Thread] = None
        self._worker_lock = threading.Lock()
        self._idle = threading.Condition()
        self._pending = 0

    # ------------------------------------------------------------------
    # State
    # ------------------------------------------------------------------

    @property
    def state(self) -> StoreState:
        return self._state

    @property
    def is_ready(self) -> bool:
        return self._state.is_ready

    @property
    def index(self) -> Optional[SampleIndex]:
        return self._state.index

    @property
    def sample_count(self) -> int:
        index = self._state.index
        return len(index) if index is not None else 0

    @property
    def source_path(self) -> Optional[str]:
        return self._state.source_path

    def add_listener(self, callback: Callable[[StoreState], None]) -> None:
        """Register a callback invoked with each newly published state."""
        with self._publish_lock:
            self._listeners.append(callback)

    def remove_listener(self, callback: Callable[[StoreState], None]) -> None:
        with self._publish_lock:
            if callback in self._listeners:
                self._listeners.remove(callback)

    def _publish(self, state: StoreState) -> None:
        with self._publish_lock:
            self._state = state
            self.last_error = None
            listeners = list(self._listeners)
        # Called unlocked so a listener may use the store again
        for callback in listeners:
            try:
                callback(state)
            except Exception as e:
                logger.warning("Store listener failed: %s", e)

    # ------------------------------------------------------------------
    # Loading
    # ------------------------------------------------------------------

    def load(self, path: PathLike) -> None:
        """Queue a pack for loading on the worker thread. Returns immediately."""
        with self._idle:
            self._pending += 1
        self._ensure_worker()
        self._requests.put(path)

    def load_sync(self, path: PathLike) -> bool:
        """
        Load a pack on the calling thread and publish it.

        Returns:
            True if a new index was published, False if the pack could not
            be opened (the current state is kept)
        """
        try:
            index = build_sample_index(
                path,
                table=self.table,
                max_samples_per_line=self.max_samples_per_line,
                capacity=self.capacity,
            )
        except PackOpenError as e:
            logger.warning("%s", e)
            self.last_error = str(e)
            return False

        self._publish(StoreState(
            status=StoreStatus.READY,
            index=index,
            source_path=str(path),
            loaded_at=time.time(),
        ))
        return True

    def wait_idle(self, timeout: Optional[float] = None) -> bool:
        """Block until every queued load has finished. Returns False on timeout."""
        with self._idle:
            return self._idle.wait_for(lambda: self._pending == 0, timeout)

    def _ensure_worker(self) -> None:
        with self._worker_lock:
            if self._worker is not None and self._worker.is_alive():
                return
            self._worker = threading.Thread(
                target=self._worker_loop, name="speedstore-worker", daemon=True
            )
            self._worker.start()
            logger.info("Speed limit store worker thread started")

    def _worker_loop(self) -> None:
        while True:
            path = self._requests.get()
            if path is _STOP:
                break
            try:
                self.load_sync(path)
            except Exception as e:
                logger.error("Unexpected error loading pack %s: %s", path, e)
                self.last_error = str(e)
            finally:
                with self._idle:
                    self._pending -= 1
                    self._idle.notify_all()

    def stop(self, timeout: float = 5.0) -> None:
        """Stop the worker thread after any queued loads have run."""
        with self._worker_lock:
            worker = self._worker
            self._worker = None
        if worker is None:
            return
        self._requests.put(_STOP)
        worker.join(timeout=timeout)
        logger.info("Speed limit store worker thread stopped")

    # ------------------------------------------------------------------
    # Queries
    # ------------------------------------------------------------------

    def query(self, latitude: float, longitude: float) -> Optional[int]:
        """
        Speed limit in km/h at a coordinate.

        Returns None when no pack is ready or no road sample lies within the
        match radius.
        """
        index = self._state.index
        if index is None:
            return None
        return index.speed_limit_at(latitude, longitude, self.match_radius_m)

    def query_match(self, latitude: float, longitude: float) -> Optional[SpeedLimitMatch]:
        """Like query(), but also reports the matched sample, distance and source."""
        index = self._state.index
        if index is None:
            return None
        return index.match(latitude, longitude, self.match_radius_m)
