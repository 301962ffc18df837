"""Documentation crawler for DocScout.

Walks a documentation site depth first from a set of seed URLs and turns the
anchors it finds into searchable documents.
"""

import asyncio
import logging
from typing import List, Optional, Set
from urllib.parse import urljoin, urlparse, urlunparse
from dataclasses import dataclass, field
from datetime import datetime, timedelta

from bs4 import BeautifulSoup

from indexer.models import Document
from observability.metrics import record_documents_extracted, record_page_crawled
from sources.loader import (
    SourceConfig,
    DEFAULT_EXTRACT_PATTERNS,
    DEFAULT_FOLLOW_PATTERNS,
    DEFAULT_MEDIA_PATTERNS,
)
from .render import Renderer

logger = logging.getLogger(__name__)

DEFAULT_SITE_ORIGIN = "https://developer.apple.com"
DEFAULT_MAX_DOCUMENTS = 200
DEFAULT_REQUEST_DELAY = 0.5


@dataclass
class CrawlStats:
    """Statistics for a crawl run."""
    pages_visited: int = 0
    pages_rendered: int = 0
    render_failures: int = 0
    parse_failures: int = 0
    links_followed: int = 0
    media_links_skipped: int = 0
    documents_extracted: int = 0
    start_time: Optional[datetime] = None
    end_time: Optional[datetime] = None

    def __post_init__(self):
        if self.start_time is None:
            self.start_time = datetime.utcnow()

    @property
    def duration(self) -> Optional[timedelta]:
        if self.end_time and self.start_time:
            return self.end_time - self.start_time
        return None

    def finish(self):
        """Mark crawl as finished."""
        self.end_time = datetime.utcnow()


@dataclass
class CrawlState:
    """Mutable state shared by every branch of one crawl run."""
    visited: Set[str] = field(default_factory=set)
    document_count: int = 0
    stats: CrawlStats = field(default_factory=CrawlStats)

    def mark_visited(self, url: str) -> bool:
        """Record a visit. Returns False if the URL was already visited in this run."""
        if url in self.visited:
            return False
        self.visited.add(url)
        return True


def normalize_text(text: str) -> str:
    """Key used for per-page duplicate detection."""
    return " ".join(text.split()).lower()


class DocumentationCrawler:
    """Depth-limited, deduplicating crawler over a single documentation site."""

    def __init__(self,
                 renderer: Renderer,
                 site_origin: str = DEFAULT_SITE_ORIGIN,
                 follow_patterns: List[str] = None,
                 media_patterns: List[str] = None,
                 extract_patterns: List[str] = None,
                 max_documents: int = DEFAULT_MAX_DOCUMENTS,
                 request_delay: float = DEFAULT_REQUEST_DELAY):
        """Initialize crawler.

        Args:
            renderer: Render capability turning a URL into HTML
            site_origin: Scheme and host that relative links resolve against
            follow_patterns: URL substrings marking documentation pages to follow
            media_patterns: URL substrings marking media pages that are never followed
            extract_patterns: URL substrings an anchor must point at to become a document
            max_documents: Soft cap on documents collected in one run
            request_delay: Seconds to wait before each page fetch
        """
        self.renderer = renderer
        self.site_origin = site_origin.rstrip('/')
        self._origin_netloc = urlparse(self.site_origin).netloc
        self.follow_patterns = follow_patterns if follow_patterns is not None else list(DEFAULT_FOLLOW_PATTERNS)
        self.media_patterns = media_patterns if media_patterns is not None else list(DEFAULT_MEDIA_PATTERNS)
        self.extract_patterns = extract_patterns if extract_patterns is not None else list(DEFAULT_EXTRACT_PATTERNS)
        self.max_documents = max_documents
        self.request_delay = request_delay
        self.last_stats: Optional[CrawlStats] = None

    @classmethod
    def from_source(cls, source: SourceConfig, renderer: Renderer) -> 'DocumentationCrawler':
        """Build a crawler from a source definition."""
        return cls(
            renderer=renderer,
            site_origin=source.site_origin,
            follow_patterns=source.follow_patterns,
            media_patterns=source.media_patterns,
            extract_patterns=source.extract_patterns,
            max_documents=source.max_documents,
            request_delay=source.request_delay,
        )

    def resolve_url(self, href: str) -> Optional[str]:
        """Turn an href into an absolute URL on the site origin, or None."""
        href = (href or '').strip()
        if not href:
            return None

        absolute = urljoin(self.site_origin + '/', href) if href.startswith('/') else href
        parsed = urlparse(absolute)
        if parsed.scheme not in ('http', 'https') or parsed.netloc != self._origin_netloc:
            return None

        return absolute

    def is_media_url(self, url: str) -> bool:
        lowered = url.lower()
        return any(pattern in lowered for pattern in self.media_patterns)

    def should_follow(self, url: str) -> bool:
        """Check if a resolved link should be traversed."""
        if self.is_media_url(url):
            return False
        return any(pattern in url for pattern in self.follow_patterns)

    def extract_documents(self, soup: BeautifulSoup) -> List[Document]:
        """Build documents from the anchors of a parsed page.

        Duplicate texts within the page are dropped case-insensitively; the
        first occurrence wins.
        """
        documents = []
        seen = set()

        for anchor in soup.select('a[href]'):
            text = anchor.get_text().strip()
            if not text:
                continue

            source = self.resolve_url(anchor.get('href'))
            if not source or not any(pattern in source for pattern in self.extract_patterns):
                continue

            key = normalize_text(text)
            if key in seen:
                continue
            seen.add(key)

            documents.append(Document(text=text, source=source))

        return documents

    def discover_links(self, soup: BeautifulSoup, stats: Optional[CrawlStats] = None) -> List[str]:
        """Collect follow-able links of a parsed page, in page order, without fragments."""
        links = []
        seen = set()

        for anchor in soup.select('a[href]'):
            url = self.resolve_url(anchor.get('href'))
            if not url:
                continue

            if self.is_media_url(url):
                if stats is not None:
                    stats.media_links_skipped += 1
                continue

            if not self.should_follow(url):
                continue

            url = urlunparse(urlparse(url)._replace(fragment=''))
            if url not in seen:
                seen.add(url)
                links.append(url)

        return links

    async def _render(self, url: str, state: CrawlState) -> Optional[str]:
        try:
            html = await self.renderer.render(url)
        except Exception as e:
            logger.warning(f"Render failed for {url}: {e}")
            html = None

        if not html:
            state.stats.render_failures += 1
            record_page_crawled('render_failed')
            return None

        state.stats.pages_rendered += 1
        return html

    async def crawl_page(self, url: str, depth: int, state: Optional[CrawlState] = None) -> List[Document]:
        """Crawl one page and, depth permitting, the documentation pages it links to.

        Args:
            url: Absolute URL of the page
            depth: Remaining link hops; nothing is fetched at depth 0
            state: Shared state of the current run (a fresh one when omitted)

        Returns:
            Documents from this page followed by those of its subtree
        """
        if state is None:
            state = CrawlState()

        if depth <= 0:
            return []

        if state.document_count >= self.max_documents:
            logger.debug(f"Document cap {self.max_documents} reached, not visiting {url}")
            return []

        if not state.mark_visited(url):
            return []

        state.stats.pages_visited += 1

        if self.request_delay:
            await asyncio.sleep(self.request_delay)

        html = await self._render(url, state)
        if html is None:
            return []

        try:
            soup = BeautifulSoup(html, 'html.parser')
            documents = self.extract_documents(soup)
            links = self.discover_links(soup, state.stats)
        except Exception as e:
            logger.warning(f"Failed to parse {url}: {e}")
            state.stats.parse_failures += 1
            record_page_crawled('parse_failed')
            return []

        record_page_crawled('rendered')
        record_documents_extracted(len(documents))
        state.document_count += len(documents)
        state.stats.documents_extracted += len(documents)
        logger.debug(f"Extracted {len(documents)} documents and {len(links)} links from {url} (depth {depth})")

        for link in links:
            if state.document_count >= self.max_documents:
                break
            state.stats.links_followed += 1
            documents.extend(await self.crawl_page(link, depth - 1, state))

        return documents

    async def crawl(self, seed_urls: List[str], max_depth: int) -> List[Document]:
        """Crawl from each seed URL, sharing one visited set across the run.

        Args:
            seed_urls: Absolute URLs to start from
            max_depth: Link hops allowed from each seed (1 visits only the seeds)

        Returns:
            Documents from every visited page
        """
        state = CrawlState()
        documents: List[Document] = []

        logger.info(f"Starting crawl of {len(seed_urls)} seed URLs (max_depth={max_depth}, "
                    f"max_documents={self.max_documents})")

        for seed in seed_urls:
            documents.extend(await self.crawl_page(seed, max_depth, state))

        state.stats.finish()
        self.last_stats = state.stats

        stats = state.stats
        logger.info(f"Crawl completed: {stats.pages_visited} pages visited, {stats.pages_rendered} rendered, "
                    f"{stats.render_failures} render failures, {stats.parse_failures} parse failures, "
                    f"{stats.media_links_skipped} media links skipped, {len(documents)} documents")

        return documents
