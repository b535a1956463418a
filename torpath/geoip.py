"""
Address to country resolution.

The parser only needs an object with ``lookup(address) -> str`` that never
raises. ``GeoIPCountryResolver`` answers from a MaxMind GeoLite2 Country
database and caches results; ``StaticCountryResolver`` answers from a
mapping and is handy for tests and hand-made snapshots.
"""

import json
import logging
import threading
from pathlib import Path
from typing import Dict, Mapping, Optional, Protocol, Union

import geoip2.database
import geoip2.errors

from .network import UNKNOWN_COUNTRY


logger = logging.getLogger(__name__)


class CountryResolver(Protocol):
    def lookup(self, address: Optional[str]) -> str:
        ...


def strip_port(address: str) -> str:
    """Remove a trailing ``:port`` from an IPv4 or bracketed IPv6 address."""
    if address.startswith("[") and "]" in address:
        return address[1:address.index("]")]

    colon = address.rfind(":")
    if colon > 0 and "." in address:
        return address[:colon]
    return address


class GeoIPCountryResolver:
    """Country lookups backed by a GeoLite2 Country database.

    Answers, including ``UNKNOWN``, are cached per raw address. The cache
    is shared between threads.
    """

    def __init__(self, db_path: Union[str, Path], reader: Optional[geoip2.database.Reader] = None):
        self.db_path = Path(db_path)
        if reader is None:
            if not self.db_path.exists():
                raise FileNotFoundError(f"GeoIP database not found at: {self.db_path}")
            reader = geoip2.database.Reader(str(self.db_path))
        self._reader = reader
        self._cache: Dict[str, str] = {}
        self._lock = threading.Lock()

    def lookup(self, address: Optional[str]) -> str:
        if address is None or not address.strip():
            return UNKNOWN_COUNTRY

        with self._lock:
            cached = self._cache.get(address)
        if cached is not None:
            return cached

        country = self._query(strip_port(address.strip()))
        with self._lock:
            self._cache[address] = country
        return country

    def _query(self, ip: str) -> str:
        reader = self._reader
        if reader is None:
            logger.debug(f"GeoIP reader closed, cannot resolve {ip}")
            return UNKNOWN_COUNTRY

        try:
            response = reader.country(ip)
        except geoip2.errors.AddressNotFoundError:
            logger.debug(f"Address not in GeoIP database: {ip}")
            return UNKNOWN_COUNTRY
        except (ValueError, geoip2.errors.GeoIP2Error) as e:
            logger.debug(f"GeoIP lookup failed for {ip}: {e}")
            return UNKNOWN_COUNTRY
        except Exception as e:
            # e.g. TypeError when the database is not a Country/City edition
            logger.debug(f"GeoIP reader error for {ip}: {e!r}")
            return UNKNOWN_COUNTRY

        if response is None or response.country is None or not response.country.name:
            return UNKNOWN_COUNTRY
        return response.country.name

    @property
    def cache_size(self) -> int:
        return len(self._cache)

    def close(self) -> None:
        if self._reader is not None:
            self._reader.close()
            self._reader = None

    def __enter__(self) -> "GeoIPCountryResolver":
        return self

    def __exit__(self, exc_type, exc, tb) -> None:
        self.close()


class StaticCountryResolver:
    """Country lookups from a fixed address -> country mapping."""

    def __init__(self, mapping: Optional[Mapping[str, str]] = None):
        self.mapping: Dict[str, str] = dict(mapping or {})

    def lookup(self, address: Optional[str]) -> str:
        if not address:
            return UNKNOWN_COUNTRY
        country = self.mapping.get(address)
        if country is None:
            country = self.mapping.get(strip_port(address), UNKNOWN_COUNTRY)
        return country

    @classmethod
    def from_json(cls, filepath: Union[str, Path]) -> "StaticCountryResolver":
        """Load a JSON object of address -> country."""
        with open(filepath, "r") as f:
            data = json.load(f)
        return cls(data)
