"""Distance Matrix lookups and distance-based slot ranking."""
from dataclasses import dataclass
from typing import Optional, Protocol, Sequence

import requests

from evplanner.calendar_utils import gather_locations
from evplanner.config import DISTANCE_TIMEOUT_SECONDS, GOOGLE_MAPS_API_KEY
from evplanner.models import LocatedTimeSlot, TimeSlot


class DistanceProviderError(RuntimeError):
    """The distance lookup as a whole failed."""


@dataclass(frozen=True)
class DistanceCell:
    distance_meters: int
    status: str

    @property
    def ok(self) -> bool:
        return self.status == "OK"


class DistanceProvider(Protocol):
    def distance_matrix(
        self,
        origins: Sequence[str],
        destinations: Sequence[str],
        mode: str = "driving",
        units: str = "imperial",
    ) -> list[list[DistanceCell]]:
        ...


def _join_addresses(addresses: Sequence[str]) -> str:
    # "|" separates addresses in the request, so it cannot appear inside one
    return "|".join(a.replace("|", " ") for a in addresses)


class GoogleDistanceMatrix:
    """Client for the Google Maps Distance Matrix API."""

    BASE_URL = "https://maps.googleapis.com/maps/api/distancematrix/json"

    def __init__(self, api_key: Optional[str] = None, timeout: int = DISTANCE_TIMEOUT_SECONDS):
        self.api_key = api_key if api_key is not None else GOOGLE_MAPS_API_KEY
        self.timeout = timeout

    def distance_matrix(
        self,
        origins: Sequence[str],
        destinations: Sequence[str],
        mode: str = "driving",
        units: str = "imperial",
    ) -> list[list[DistanceCell]]:
        """
        Fetch the full origins × destinations matrix in one request.

        Args:
            origins: Origin addresses
            destinations: Destination addresses
            mode: Travel mode (driving, walking, bicycling, transit)
            units: Unit system for the text fields; ``distance_meters`` is
                always in meters

        Returns:
            Matrix indexed ``[origin][destination]``

        Raises:
            DistanceProviderError: On network errors, HTTP errors or a
                non-"OK" top-level status
        """
        params = {
            "origins": _join_addresses(origins),
            "destinations": _join_addresses(destinations),
            "mode": mode,
            "units": units,
            "key": self.api_key,
        }
        try:
            response = requests.get(self.BASE_URL, params=params, timeout=self.timeout)
            response.raise_for_status()
            payload = response.json()
        except (requests.RequestException, ValueError) as e:
            print(f"❌ Distance Matrix request failed: {e}")
            raise DistanceProviderError(f"Distance Matrix request failed: {e}") from e

        status = payload.get("status")
        if status != "OK":
            message = f"Distance Matrix returned {status}"
            if payload.get("error_message"):
                message += f": {payload['error_message']}"
            print(f"❌ {message}")
            raise DistanceProviderError(message)

        try:
            return [
                [
                    DistanceCell(
                        distance_meters=int(element.get("distance", {}).get("value", 0)),
                        status=element.get("status", "UNKNOWN_ERROR"),
                    )
                    for element in row["elements"]
                ]
                for row in payload["rows"]
            ]
        except (KeyError, TypeError) as e:
            raise DistanceProviderError(f"Malformed Distance Matrix response: {e}") from e

# ──────────────────────────────────────────────
# Ranking
# ──────────────────────────────────────────────

def _row_to_map(row: Sequence[DistanceCell], addresses: Sequence[str], origin: str) -> dict[str, int]:
    distances: dict[str, int] = {}
    for address, cell in zip(addresses, row):
        if not cell.ok:
            print(f"⚠️  no distance from '{origin}' to '{address}': {cell.status}")
            continue
        distances[address] = cell.distance_meters
    return distances


def added_distance(
    slot: TimeSlot,
    event_location: str,
    start_location: str,
    event_location_map: dict[str, int],
    start_location_map: dict[str, int],
) -> int:
    """Extra distance a slot implies; unknown distances count as zero."""
    if slot.comes_after is not None:
        after = event_location_map.get(slot.comes_after.location, 0)
    else:
        after = start_location_map.get(event_location, 0)

    if slot.comes_before is not None:
        before = event_location_map.get(slot.comes_before.location, 0)
    else:
        before = event_location_map.get(start_location, 0)

    return after + before


def rank_by_distance(
    slots: Sequence[TimeSlot],
    event_location: str,
    start_location: str,
    distance_provider: DistanceProvider,
) -> list[LocatedTimeSlot]:
    """
    Rank slots by how much driving they add.

    The provider is called exactly once with the reference locations followed
    by every neighbouring event location, as both origins and destinations.

    Args:
        slots: Slots in date order
        event_location: Where the new event takes place
        start_location: Where the day starts (home, office)
        distance_provider: Anything with a ``distance_matrix`` method

    Returns:
        LocatedTimeSlot list ordered by ascending added distance; ties keep
        date order
    """
    addresses = [event_location, start_location] + sorted(gather_locations(slots))
    matrix = distance_provider.distance_matrix(addresses, addresses, mode="driving", units="imperial")
    if len(matrix) < 2:
        raise DistanceProviderError(f"Expected {len(addresses)} matrix rows, got {len(matrix)}")

    event_location_map = _row_to_map(matrix[0], addresses, event_location)
    start_location_map = _row_to_map(matrix[1], addresses, start_location)

    located = [
        LocatedTimeSlot(
            slot,
            added_distance(slot, event_location, start_location, event_location_map, start_location_map),
        )
        for slot in slots
    ]
    return sorted(located, key=lambda s: s.added_distance)
