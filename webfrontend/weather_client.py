# =============================================================================
# webfrontend/weather_client.py - Weather API Client
# =============================================================================
# Fetches forecasts from the API service.
#
# The JSON array is parsed incrementally while the body streams in, and
# reading stops as soon as enough forecasts were collected: the rest of
# the body is never pulled from the network.
# =============================================================================

import logging
from collections.abc import AsyncIterator
from contextlib import aclosing

import httpx
import ijson
from pydantic import ValidationError

from core.models.forecast import WeatherForecast

logger = logging.getLogger(__name__)

FORECAST_PATH = "/weatherforecast"


class _AsyncChunkReader:
    """Async file-like view over a byte-chunk iterator, as ijson expects."""

    def __init__(self, chunks: AsyncIterator[bytes]):
        self._chunks = chunks
        self._buffer = b""

    async def read(self, size: int = -1) -> bytes:
        # ijson calls read(0) once to detect bytes vs. text; nothing may be consumed
        if size == 0:
            return b""

        # Pull at most one chunk per read so parsing stops with the body unread
        if not self._buffer:
            async for chunk in self._chunks:
                if chunk:
                    self._buffer = chunk
                    break

        if size < 0:
            data, self._buffer = self._buffer, b""
        else:
            data, self._buffer = self._buffer[:size], self._buffer[size:]
        return data


async def iter_forecasts(chunks: AsyncIterator[bytes]) -> AsyncIterator[WeatherForecast]:
    """
    Lazily parse a JSON array of forecasts from a byte stream.

    Null elements and elements that do not validate are skipped.

    Args:
        chunks: Raw body chunks (e.g., response.aiter_bytes())

    Yields:
        One WeatherForecast per valid array element
    """
    async for item in ijson.items(_AsyncChunkReader(chunks), "item", use_float=True):
        if item is None:
            continue
        try:
            yield WeatherForecast.model_validate(item)
        except ValidationError as e:
            logger.warning(f"Skipping invalid forecast element: {e.error_count()} validation error(s)")


class WeatherApiClient:
    """
    Client for the weather API.

    Args:
        http_client: Client whose base_url points at the API service
            (normally created by ServiceContext.create_http_client, which
            adds service discovery and resilience)
    """

    def __init__(self, http_client: httpx.AsyncClient):
        self._http_client = http_client

    async def get_forecasts(self, max_items: int = 10) -> list[WeatherForecast]:
        """
        Get up to max_items forecasts.

        Cancelling the calling task aborts the read at the next chunk and
        raises asyncio.CancelledError; nothing collected so far is returned.

        Args:
            max_items: Maximum number of forecasts to return

        Returns:
            Forecasts in server order (empty list when there are none)

        Raises:
            httpx.HTTPStatusError: The API answered with a non-success status
            httpx.TransportError: The API could not be reached
        """
        forecasts: list[WeatherForecast] = []
        if max_items <= 0:
            return forecasts

        async with self._http_client.stream("GET", FORECAST_PATH) as response:
            response.raise_for_status()

            async with aclosing(iter_forecasts(response.aiter_bytes())) as items:
                async for forecast in items:
                    forecasts.append(forecast)
                    if len(forecasts) >= max_items:
                        break

        logger.debug(f"Fetched {len(forecasts)} forecast(s)")
        return forecasts
