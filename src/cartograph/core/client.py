import logging
import threading
from pathlib import Path

import requests

from ..errors import DownloadError

logger = logging.getLogger(__name__)


class MapdbClient:
    """HTTP client for fetching the monolithic mapdb JSON."""

    def __init__(self, timeout: tuple[float, float] = (10, 60)):
        self.timeout = timeout
        self._thread_local = threading.local()

    @property
    def session(self) -> requests.Session:
        """Accessor for the current thread's session."""
        return self._get_session()

    def _get_session(self) -> requests.Session:
        """Get or create a thread-local requests.Session."""
        if not hasattr(self._thread_local, "session"):
            self._thread_local.session = self._create_session()
        return self._thread_local.session

    def _create_session(self) -> requests.Session:
        session = requests.Session()
        session.headers["Accept"] = "application/json"
        return session

    def fetch(self, url: str) -> bytes:
        """
        Fetch the raw mapdb bytes from *url*.

        Raises:
            DownloadError: On connection failure or a non-2xx status.
        """
        logger.info("Fetching mapdb from %s", url)
        try:
            response = self._get_session().get(url, timeout=self.timeout)
        except requests.RequestException as exc:
            raise DownloadError(url, None, str(exc)) from exc

        if not response.ok:
            raise DownloadError(
                url, response.status_code, response.reason or ""
            )
        return response.content

    def download(self, url: str, dest: Path) -> dict:
        """
        Fetch *url* and write it to *dest*.

        Returns:
            Dict with ``url``, ``location`` and ``mb`` (size in MiB, two
            decimals, as a string).
        """
        content = self.fetch(url)
        dest.parent.mkdir(parents=True, exist_ok=True)
        dest.write_bytes(content)
        mb = f"{dest.stat().st_size / 2**20:.2f}"
        logger.info("Wrote %s MiB to %s", mb, dest)
        return {"url": url, "location": str(dest), "mb": mb}
