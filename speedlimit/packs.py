"""
City pack naming and lookup.

Packs are SQLite files named after the city they cover, e.g. "Istanbul.sqlite".
The file name is the city name with diacritics folded and anything that is not
a letter or digit removed. Packs may also be stored under their city tag,
e.g. "city_TR_Istanbul.sqlite".
"""

import logging
import unicodedata
from dataclasses import dataclass
from pathlib import Path
from typing import Iterable, List, Optional, Union

from .config import PACK_EXTENSION

logger = logging.getLogger('openHUD.packs')


@dataclass(frozen=True)
class CityInfo:
    """Result of reverse-geocoding a position to a city."""
    city_name: str
    country_code: Optional[str] = None


def sanitize_city_name(raw: str) -> str:
    """Fold diacritics and keep only alphanumeric characters."""
    folded = unicodedata.normalize("NFKD", raw)
    folded = "".join(ch for ch in folded if not unicodedata.combining(ch))
    return "".join(ch for ch in folded if ch.isalnum())


def make_city_tag(country_code: Optional[str], city_name: str) -> str:
    """Pack tag for a city, e.g. city_TR_Istanbul."""
    code = (country_code or "XX").upper()
    return f"city_{code}_{sanitize_city_name(city_name)}"


class PackLocator:
    """Finds city packs in a list of directories, searched in order."""

    def __init__(self, pack_dirs: Iterable[Union[str, Path]]):
        self.pack_dirs: List[Path] = [Path(d) for d in pack_dirs]

    def candidate_names(self, city: CityInfo) -> List[str]:
        names = [sanitize_city_name(city.city_name) + PACK_EXTENSION]
        names.append(make_city_tag(city.country_code, city.city_name) + PACK_EXTENSION)
        return names

    def find_pack(self, city: CityInfo) -> Optional[Path]:
        """Path of the pack for a city, None if no directory has one."""
        if not sanitize_city_name(city.city_name):
            return None
        for pack_dir in self.pack_dirs:
            for name in self.candidate_names(city):
                path = pack_dir / name
                if path.is_file():
                    return path
        logger.debug("No pack found for %s", city.city_name)
        return None

    def available_packs(self) -> List[Path]:
        """All pack files in the search directories."""
        packs = []
        for pack_dir in self.pack_dirs:
            if pack_dir.is_dir():
                packs.extend(sorted(pack_dir.glob(f"*{PACK_EXTENSION}")))
        return packs
