"""
HERE traffic flow client.
"""

from typing import Any, Dict, Optional

import httpx

from shared.config import HERE_FLOW_URL
from shared.errors import UpstreamError, UpstreamHTTPError, UpstreamParseError, UpstreamTimeoutError
from shared.logging import get_logger


PROVIDER_NAME = "here"
PROXIMITY_RADIUS_METERS = 5000
DEFAULT_CONGESTION_FACTOR = 0.5


class HereTrafficClient:
    """Client for the HERE flow endpoint.

    Raises ``UpstreamHTTPError`` for non-2xx answers, ``UpstreamParseError``
    for bodies that are not JSON objects, ``UpstreamTimeoutError`` for
    transport timeouts and ``UpstreamError`` for other transport failures.
    Deadlines and retries belong to the caller.
    """

    def __init__(self,
                 base_url: str = HERE_FLOW_URL,
                 timeout: float = 10.0,
                 transport: Optional[httpx.AsyncBaseTransport] = None):
        self.base_url = base_url
        self.timeout = timeout
        self._transport = transport
        self.logger = get_logger("traffic.here_client")

    async def get_flow(self, lat: float, lng: float, api_key: str) -> Dict[str, Any]:
        """Fetch the raw flow document around a coordinate."""
        params = {
            "prox": f"{lat},{lng},{PROXIMITY_RADIUS_METERS}",
            "apiKey": api_key,
        }

        try:
            async with httpx.AsyncClient(timeout=self.timeout, transport=self._transport) as client:
                response = await client.get(self.base_url, params=params)
        except httpx.TimeoutException as exc:
            raise UpstreamTimeoutError(PROVIDER_NAME, self.timeout) from exc
        except httpx.HTTPError as exc:
            raise UpstreamError(PROVIDER_NAME, str(exc) or type(exc).__name__) from exc

        if not response.is_success:
            self.logger.warning(
                "Traffic flow request failed",
                status_code=response.status_code,
                lat=lat,
                lng=lng
            )
            raise UpstreamHTTPError(PROVIDER_NAME, response.status_code)

        try:
            body = response.json()
        except ValueError as exc:
            raise UpstreamParseError(PROVIDER_NAME, "response body is not JSON") from exc

        if not isinstance(body, dict):
            raise UpstreamParseError(PROVIDER_NAME, "response body is not a JSON object")

        self.logger.debug("Traffic flow retrieved", lat=lat, lng=lng)
        return body


def _first(container: Any, key: str) -> Any:
    """Return ``container[key][0]`` when present, else None."""
    if not isinstance(container, dict):
        return None
    items = container.get(key)
    if isinstance(items, list) and items:
        return items[0]
    return None


def parse_congestion(payload: Dict[str, Any]) -> int:
    """
    Reduce a HERE flow document to a 0-100 congestion score.

    Uses the first current-flow record (``RWS/RW/FIS/FI/CF``): the jam factor
    (0-10) scaled by ten when present, otherwise the confidence-weighted
    ``CN`` value (default 0.5) as a percentage.
    """
    if not isinstance(payload, dict) or not isinstance(payload.get("RWS"), list):
        raise UpstreamParseError(PROVIDER_NAME, "missing RWS section")

    flow = payload
    for key in ("RWS", "RW", "FIS", "FI", "CF"):
        flow = _first(flow, key)
        if flow is None:
            break

    flow = flow or {}
    try:
        jam_factor = flow.get("JF")
        if jam_factor is not None:
            return max(0, min(100, round(float(jam_factor) * 10)))

        factor = flow.get("CN")
        factor = DEFAULT_CONGESTION_FACTOR if factor is None else float(factor)
        return max(0, min(100, round(factor * 100)))
    except (TypeError, ValueError) as exc:
        raise UpstreamParseError(PROVIDER_NAME, f"non-numeric flow value: {exc}") from exc
