from fastapi import APIRouter, Depends, Query
from ridecrew.config import settings
from ridecrew.core.errors import (
    ApiErrorCode, create_api_error, envelope_response, error_response, success_response
)
from ridecrew.modules.geocoding.client import GeocodingClient, GeocodingError

router = APIRouter(prefix="/geocoding", tags=["geocoding"])


async def get_geocoding_client():
    client = GeocodingClient()
    try:
        yield client
    finally:
        await client.aclose()


def _lookup_failed(exc: GeocodingError):
    return envelope_response(error_response(create_api_error(
        ApiErrorCode.NETWORK_ERROR,
        str(exc),
        "Could not look up that location. Please type the address instead.",
    )))


@router.get("/reverse")
async def reverse_geocode(
    lat: float = Query(..., ge=-90, le=90),
    lng: float = Query(..., ge=-180, le=180),
    client: GeocodingClient = Depends(get_geocoding_client)
):
    """Starting point for a device position (raw coordinates when the lookup fails)"""
    return envelope_response(success_response(await client.resolve_position(lat, lng)))


@router.get("/search")
async def search_addresses(
    q: str = Query(..., min_length=1),
    client: GeocodingClient = Depends(get_geocoding_client)
):
    """Address suggestions; queries shorter than the minimum length return no matches"""
    if len(q.strip()) < settings.autocomplete_min_chars:
        return envelope_response(success_response([]))
    try:
        suggestions = await client.search(q.strip())
    except GeocodingError as e:
        return _lookup_failed(e)
    return envelope_response(success_response(suggestions))
