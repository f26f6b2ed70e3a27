"""
JSON over HTTP for the price feeds.
"""

from typing import Any, Optional

import requests

from ..utils.logger import SynthLogger, get_logger
from .interface import PriceFeedError


class Networker:
    """
    Thin wrapper over requests.get returning decoded JSON.

    Usage:
        networker = Networker()
        payload = networker.get_json("https://marketdata.tradermade.com/api/v1/live?...")
    """

    def __init__(
        self,
        session: Optional[requests.Session] = None,
        timeout: float = 10.0,
        logger: Optional[SynthLogger] = None,
    ):
        self.session = session or requests.Session()
        self.timeout = timeout
        self.logger = logger or get_logger()

    def get_json(self, url: str) -> Any:
        """
        GET a URL and decode the JSON body.

        Args:
            url: Fully formed request URL

        Returns:
            Decoded JSON

        Raises:
            PriceFeedError: Transport failure, non-2xx status or invalid JSON
        """
        try:
            response = self.session.get(url, timeout=self.timeout)
            response.raise_for_status()
            return response.json()
        except requests.RequestException as e:
            # Never echo the URL: it carries the API key
            self.logger.debug(f"Networker request failed: {type(e).__name__}")
            raise PriceFeedError(f"request failed: {type(e).__name__}") from e
        except ValueError as e:
            self.logger.debug("Networker received a non-JSON response")
            raise PriceFeedError("response was not valid JSON") from e
