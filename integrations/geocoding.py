"""Reverse geocoding: (lat, lng) -> "City, Province".

Uses the Google Geocoding API when GOOGLE_MAPS_API_KEY is configured and
falls back to Nominatim (OpenStreetMap) otherwise, or whenever Google fails.
Nominatim's usage policy requires an identifying User-Agent.

ReverseGeocoder.city_for() never raises: any failure degrades to
UNKNOWN_CITY so a bucket can still be reasoned over.
"""

import logging
import re

import httpx

logger = logging.getLogger(__name__)

UNKNOWN_CITY = "Unknown City"

GOOGLE_GEOCODE_URL = "https://maps.googleapis.com/maps/api/geocode/json"
NOMINATIM_REVERSE_URL = "https://nominatim.openstreetmap.org/reverse"
USER_AGENT = "disaster-pulse/1.0"

_PLUS_CODE = re.compile(r"^[A-Z0-9]{4,}\+[A-Z0-9]+")
_POSTAL_CODE = re.compile(r"^\d{5}$")
_PRIORITY_TYPES = ("locality", "administrative_area_level_2", "administrative_area_level_3")
_REGENCY_MARKERS = ("Regency", "City", "Kota", "Kabupaten")


class ReverseGeocoder:
    """Resolves coordinates to a human-readable city.

    Attributes:
        api_key: Google Maps API key. Empty means Nominatim only.
        timeout: Per-request timeout in seconds.
    """

    def __init__(
        self,
        api_key: str = "",
        timeout: float = 10,
        transport: httpx.AsyncBaseTransport | None = None,
    ) -> None:
        """Create a geocoder.

        Args:
            api_key: Google Maps API key, or "" to use Nominatim.
            timeout: Per-request timeout in seconds.
            transport: httpx transport override, used by tests to serve
                canned responses.
        """
        self.api_key = api_key
        self.timeout = timeout
        self._transport = transport

    async def city_for(self, lat: float, lng: float) -> str:
        """Return "City, Province" for a point, or UNKNOWN_CITY."""
        try:
            city = await self.reverse_geocode(lat, lng)
        except Exception as exc:
            logger.warning("Reverse geocoding failed for %.4f,%.4f: %s", lat, lng, exc)
            return UNKNOWN_CITY
        return city or UNKNOWN_CITY

    async def reverse_geocode(self, lat: float, lng: float) -> str | None:
        async with httpx.AsyncClient(timeout=self.timeout, transport=self._transport) as client:
            if self.api_key:
                try:
                    city = await self._google(client, lat, lng)
                except httpx.HTTPError as exc:
                    logger.warning("Google geocoding failed, falling back to Nominatim: %s", exc)
                    city = None
                if city:
                    return city
            return await self._nominatim(client, lat, lng)

    # ── Private helpers ─────────────────────────────────────────────────────

    async def _google(self, client: httpx.AsyncClient, lat: float, lng: float) -> str | None:
        resp = await client.get(GOOGLE_GEOCODE_URL, params={"latlng": f"{lat},{lng}", "key": self.api_key})
        resp.raise_for_status()
        data = resp.json()
        if data.get("status") != "OK" or not data.get("results"):
            logger.debug("Google geocoding returned status %s", data.get("status"))
            return None
        return extract_best_location(data["results"])

    async def _nominatim(self, client: httpx.AsyncClient, lat: float, lng: float) -> str | None:
        resp = await client.get(
            NOMINATIM_REVERSE_URL,
            params={"format": "json", "lat": lat, "lon": lng, "zoom": 10, "addressdetails": 1},
            headers={"User-Agent": USER_AGENT},
        )
        resp.raise_for_status()
        data = resp.json()

        address = data.get("address") or {}
        city = address.get("city") or address.get("town") or address.get("county") or address.get("municipality")
        province = address.get("state") or address.get("province")
        if city and province:
            return f"{city}, {province}"
        if province:
            return province
        if data.get("display_name"):
            return format_city_province(data["display_name"])
        return None


def extract_best_location(results: list[dict]) -> str | None:
    """Pick the most useful Google result and format it as "City, Province".

    Plus codes, the bare country and very short addresses are skipped.
    Results typed as locality or regency win over anything else.
    """
    valid = [
        r for r in results
        if (addr := r.get("formatted_address"))
        and not _PLUS_CODE.match(addr)
        and addr != "Indonesia"
        and len(addr) >= 10
    ]
    if not valid:
        return None

    for wanted in _PRIORITY_TYPES:
        match = next((r for r in valid if wanted in r.get("types", [])), None)
        if match:
            return format_city_province(match["formatted_address"])

    regency = next(
        (r for r in valid if any(marker in r["formatted_address"] for marker in _REGENCY_MARKERS)),
        None,
    )
    return format_city_province((regency or valid[0])["formatted_address"])


def format_city_province(address: str) -> str | None:
    """Reduce a full address to its last two meaningful parts.

    The country, 5-digit postal codes and plus codes are dropped first, so
    "Menteng, Jakarta Pusat, DKI Jakarta, 10310, Indonesia" becomes
    "Jakarta Pusat, DKI Jakarta".
    """
    parts = [p.strip() for p in address.split(",")]
    if parts and parts[-1] == "Indonesia":
        parts.pop()
    parts = [p for p in parts if p and not _POSTAL_CODE.match(p) and not _PLUS_CODE.match(p)]
    if not parts:
        return None
    if len(parts) == 1:
        return parts[0]
    return f"{parts[-2]}, {parts[-1]}"
