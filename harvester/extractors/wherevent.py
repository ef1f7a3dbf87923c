"""
Wherevent event listing extractor.

Downloads an event listing page, optionally through an HTTP proxy, and turns
every `.event` block into one flat record.
"""

import threading
from typing import List, Optional

import requests
from bs4 import BeautifulSoup

from harvester.exceptions import ExtractionError, FetchError

FIELDS = ["Url", "Thumb", "Title", "DateTime", "Location", "FemaleCount", "MaleCount"]


class WhereventExtractor:
    """Extractor for wherevent.com event listings."""

    USER_AGENT = "Mozilla/5.0 (compatible; harvester/0.1)"

    def __init__(self, timeout: float = 30.0):
        self.timeout = timeout
        self._local = threading.local()

    def _session(self) -> requests.Session:
        """One session per worker thread; requests sessions are not thread-safe."""
        session = getattr(self._local, "session", None)
        if session is None:
            session = requests.Session()
            session.headers["User-Agent"] = self.USER_AGENT
            self._local.session = session
        return session

    def __call__(self, uri: str, proxy: Optional[str] = None) -> List[dict]:
        html = self.fetch(uri, proxy)
        return self.parse(uri, html)

    def fetch(self, uri: str, proxy: Optional[str] = None) -> str:
        """
        Download a page as UTF-8 text.

        Args:
            uri: Page URL
            proxy: Proxy URL used for both http and https, or None

        Returns:
            Response body

        Raises:
            FetchError: On network failure or an HTTP error status
        """
        proxies = {"http": proxy, "https": proxy} if proxy else None
        try:
            response = self._session().get(uri, proxies=proxies, timeout=self.timeout)
        except requests.RequestException as e:
            raise FetchError(f"Request failed: {e}") from e

        if response.status_code != 200:
            raise FetchError(f"HTTP {response.status_code} {response.reason}")

        response.encoding = "utf-8"
        return response.text

    def parse(self, uri: str, html: str) -> List[dict]:
        """
        Extract events from a listing page.

        Args:
            uri: Page URL, copied into every record
            html: Page source

        Returns:
            One record per event, empty if the page lists none

        Raises:
            ExtractionError: If an event block lacks one of the expected elements
        """
        soup = BeautifulSoup(html, "html.parser")
        records = []
        for event in soup.select(".event"):
            records.append({
                "Url": uri,
                "Thumb": self._require(event, "img", uri).get("src", ""),
                "Title": self._require(event, ".event_title", uri).get_text(),
                "DateTime": self._require(event, "time", uri).get("datetime", ""),
                "Location": self._require(event, ".event_location", uri).get_text().strip(),
                "FemaleCount": self._require(event, ".event_femalecount", uri).get_text(),
                "MaleCount": self._require(event, ".event_malecount", uri).get_text(),
            })
        return records

    @staticmethod
    def _require(event, selector: str, uri: str):
        element = event.select_one(selector)
        if element is None:
            raise ExtractionError(f"Missing {selector} in event block on {uri}")
        return element
