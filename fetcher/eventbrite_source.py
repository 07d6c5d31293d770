"""Client for the Eventbrite owned events API."""
import logging
from typing import Any, List

import requests

logger = logging.getLogger(__name__)


class EventSourceError(Exception):
    """Raised when the Eventbrite API cannot be reached or returns an error."""


class EventbriteSource:
    """Fetches the live events owned by the authenticated Eventbrite user."""

    LIVE_EVENTS_PATH = 'users/me/owned_events/?status=live&order_by=start_desc'

    def __init__(self, timeout: int = 30):
        """
        Initialize the event source.

        Args:
            timeout: HTTP request timeout in seconds (default: 30)
        """
        self.timeout = timeout

    @classmethod
    def live_events_url(cls, endpoint: str) -> str:
        """Build the request URL for live events, newest start first."""
        if not endpoint.endswith('/'):
            endpoint += '/'
        return endpoint + cls.LIVE_EVENTS_PATH

    def fetch(self, request_url: str, bearer_token: str) -> List[Any]:
        """
        Fetch events with a single authenticated GET request.

        Only the first page returned by the API is read.

        Args:
            request_url: Fully formed request URL
            bearer_token: Eventbrite OAuth token

        Returns:
            List of raw event objects, empty when the response carries none

        Raises:
            EventSourceError: If the request fails or returns an error status
        """
        logger.info(f"Fetching events from {request_url}")
        try:
            response = requests.get(
                request_url,
                headers={'Authorization': f'Bearer {bearer_token}'},
                timeout=self.timeout
            )
            response.raise_for_status()
        except requests.RequestException as e:
            logger.error(f"Eventbrite request failed: {e}")
            raise EventSourceError(str(e)) from e

        try:
            payload = response.json()
        except ValueError as e:
            logger.warning(f"Eventbrite response is not valid JSON: {e}")
            return []

        events = self._extract_events(payload)
        logger.info(f"Received {len(events)} events from Eventbrite")
        return events

    def _extract_events(self, payload: Any) -> List[Any]:
        """
        Pull the events collection out of a decoded response body.

        Args:
            payload: Decoded JSON body

        Returns:
            List of event objects
        """
        if not isinstance(payload, dict):
            logger.warning("Eventbrite response body is not an object")
            return []

        events = payload.get('events')
        if isinstance(events, list):
            return events
        if isinstance(events, dict):
            return list(events.values())

        logger.warning("Eventbrite response has no events collection")
        return []
