"""Page rendering for the DocScout crawler.

The crawler only needs "URL in, HTML out". ``HttpRenderer`` fetches pages
with aiohttp; any object with the same ``render`` coroutine can replace it,
for example a headless browser for script-heavy sites.
"""

import asyncio
import logging
from typing import Optional, Protocol

import aiohttp

logger = logging.getLogger(__name__)

DEFAULT_TIMEOUT = 15.0
DEFAULT_USER_AGENT = "Mozilla/5.0 (Macintosh; Intel Mac OS X 10_15_7) AppleWebKit/537.36"


class Renderer(Protocol):
    """Renders a URL to an HTML string, or None on any failure."""

    async def render(self, url: str) -> Optional[str]:
        ...


class HttpRenderer:
    """Fetches pages over HTTP with a bounded timeout."""

    def __init__(self, timeout: float = DEFAULT_TIMEOUT, user_agent: str = None):
        """Initialize renderer.

        Args:
            timeout: Total request timeout in seconds
            user_agent: User agent string sent with every request
        """
        self.timeout = timeout
        self.user_agent = user_agent or DEFAULT_USER_AGENT
        self.session: Optional[aiohttp.ClientSession] = None

    async def __aenter__(self):
        """Async context manager entry."""
        if self.session is None:
            self.session = aiohttp.ClientSession(
                timeout=aiohttp.ClientTimeout(total=self.timeout),
                headers={'User-Agent': self.user_agent}
            )
        return self

    async def __aexit__(self, exc_type, exc_val, exc_tb):
        """Async context manager exit."""
        await self.close()

    async def close(self):
        """Close the renderer session."""
        if self.session:
            await self.session.close()
            self.session = None

    async def render(self, url: str) -> Optional[str]:
        """Fetch a page and return its HTML, or None on any failure."""
        if not self.session:
            await self.__aenter__()

        try:
            async with self.session.get(url, allow_redirects=True) as response:
                if response.status != 200:
                    logger.info(f"Skipping {url}: HTTP {response.status}")
                    return None

                content_type = response.headers.get('content-type', '')
                if 'html' not in content_type:
                    logger.info(f"Skipping {url}: non-HTML content type {content_type!r}")
                    return None

                html = await response.text()

        except asyncio.TimeoutError:
            logger.warning(f"Timeout fetching {url} after {self.timeout}s")
            return None
        except aiohttp.ClientError as e:
            logger.warning(f"Client error fetching {url}: {e}")
            return None
        except UnicodeDecodeError as e:
            logger.warning(f"Could not decode {url}: {e}")
            return None

        if not html or not html.strip():
            logger.info(f"Skipping {url}: empty body")
            return None

        return html
