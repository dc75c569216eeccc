"""
Google Places API fetcher.

Resolves clinic identifiers (``ChIJ...`` place ids or Google Maps URLs) to
place ids and names, and fetches the reviews exposed by Place Details.
Upstream failures are logged and degrade to None / an empty list.
"""

import logging
import re
from dataclasses import dataclass
from typing import Any, Dict, List, Optional
from urllib.parse import unquote

import httpx

logger = logging.getLogger(__name__)

PLACES_API_URL = "https://maps.googleapis.com/maps/api/place"

# Identifiers in GOOGLE_PLACES_IDS are comma separated, but Maps URLs may
# contain commas themselves; only split where the next entry begins.
_ENTRY_SPLIT_RE = re.compile(r",\s*(?=https?://|ChIJ)")
_BANG_ID_RE = re.compile(r"!1s([^!]+)")
_G_ID_RE = re.compile(r"/g/([^/?]+)")
_PLACE_ID_PARAM_RE = re.compile(r"place_id=([^&]+)")
_PLACE_NAME_RE = re.compile(r"place/([^/@]+)")


@dataclass
class PlaceInfo:
    place_id: str
    clinic_name: str


def split_place_identifiers(raw: Optional[str]) -> List[str]:
    """Split the GOOGLE_PLACES_IDS value into place ids and URLs."""
    if not raw:
        return []
    return [part.strip() for part in _ENTRY_SPLIT_RE.split(raw) if part.strip()]


def extract_place_id_from_url(url: str) -> Optional[str]:
    """Pull a place identifier out of a Maps URL (several URL shapes)."""
    if match := _BANG_ID_RE.search(url):
        return match.group(1).replace(":", "_")
    if match := _G_ID_RE.search(url):
        return f"g_{match.group(1)}"
    if match := _PLACE_ID_PARAM_RE.search(url):
        return match.group(1)
    return None


def extract_name_from_url(url: str) -> Optional[str]:
    if match := _PLACE_NAME_RE.search(url):
        return unquote(match.group(1).replace("+", " "))
    return None


class GooglePlacesClient:
    """Thin async client for the Places Details and Text Search endpoints."""

    def __init__(self, api_key: str, timeout: float = 15.0):
        self.api_key = api_key
        self.timeout = timeout

    async def _get(self, endpoint: str, params: Dict[str, Any]) -> Optional[Dict[str, Any]]:
        try:
            async with httpx.AsyncClient(timeout=self.timeout) as client:
                response = await client.get(
                    f"{PLACES_API_URL}/{endpoint}/json",
                    params={**params, "key": self.api_key},
                )
                response.raise_for_status()
                data = response.json()
        except Exception as e:
            logger.warning(f"Google Places {endpoint} request failed: {e}")
            return None

        if data.get("status") != "OK":
            logger.warning(
                f"Google Places {endpoint} returned status {data.get('status')}: "
                f"{data.get('error_message', '')}"
            )
            return None
        return data

    async def get_place_name(self, place_id: str) -> Optional[str]:
        data = await self._get("details", {"place_id": place_id, "fields": "name"})
        if data:
            return (data.get("result") or {}).get("name")
        return None

    async def find_place(self, name: str) -> Optional[PlaceInfo]:
        """Text-search a place by name and take the first hit."""
        data = await self._get("textsearch", {"query": name})
        results = (data or {}).get("results") or []
        if not results:
            return None
        first = results[0]
        return PlaceInfo(place_id=first["place_id"], clinic_name=first.get("name") or name)

    async def resolve(self, identifier: str) -> Optional[PlaceInfo]:
        """Turn a place id or Maps URL into a PlaceInfo."""
        if identifier.startswith("ChIJ"):
            name = await self.get_place_name(identifier)
            return PlaceInfo(place_id=identifier, clinic_name=name or "Unknown Clinic")

        if not identifier.startswith(("http://", "https://")):
            return None

        extracted = extract_place_id_from_url(identifier)
        if extracted and extracted.startswith("ChIJ"):
            name = await self.get_place_name(extracted)
            return PlaceInfo(
                place_id=extracted,
                clinic_name=name or extract_name_from_url(identifier) or "Unknown Clinic",
            )

        place_name = extract_name_from_url(identifier)
        if not place_name:
            return None
        logger.info(f"Searching for place: {place_name}")
        return await self.find_place(place_name)

    async def fetch_reviews(self, place_id: str) -> List[Dict[str, Any]]:
        data = await self._get("details", {"place_id": place_id, "fields": "reviews,name"})
        if not data:
            return []
        return (data.get("result") or {}).get("reviews") or []
