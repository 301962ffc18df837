import sys
from collections import Counter
from pathlib import Path
from typing import Dict, List, Optional

import pytest

# Add project root to Python path
project_root = Path(__file__).parent.parent
sys.path.insert(0, str(project_root))

from indexer.embeddings import EmbeddingService
from pipelines.crawler import DocumentationCrawler

ORIGIN = "https://example.com"
SEED = "https://example.com/documentation/"


class SyntheticRenderer:
    """Serves HTML from a dict and counts how often each URL is rendered."""

    def __init__(self, pages: Dict[str, str], failing: Optional[set] = None):
        self.pages = pages
        self.failing = failing or set()
        self.calls = Counter()

    async def render(self, url: str) -> Optional[str]:
        self.calls[url] += 1
        if url in self.failing:
            raise ConnectionError(f"cannot reach {url}")
        return self.pages.get(url)


class KeywordEncoder:
    """Deterministic bag-of-words encoder over a fixed vocabulary.

    Texts containing a word from ``fail_on`` raise, which stands in for a
    tokenizer or model failure.
    """

    VOCABULARY = ["alpha", "beta", "gamma", "swift", "concurrency", "widgets", "charts", "video"]

    def __init__(self, fail_on=()):
        self.fail_on = set(fail_on)
        self.calls: List[str] = []

    def encode(self, text: str) -> List[float]:
        self.calls.append(text)
        words = text.lower().split()
        if self.fail_on.intersection(words):
            raise RuntimeError(f"cannot encode {text!r}")
        vector = [float(words.count(term)) for term in self.VOCABULARY]
        # Keep every vector non-zero so cosine similarity stays defined
        vector.append(0.1)
        return vector


def page(*anchors) -> str:
    """Build a small HTML page from (href, text) pairs."""
    links = "\n".join(f'<li><a href="{href}">{text}</a></li>' for href, text in anchors)
    return f"<html><body><nav><ul>{links}</ul></nav></body></html>"


@pytest.fixture
def site_pages():
    return {
        SEED: page(
            ("/documentation/alpha", "Alpha"),
            ("/documentation/beta", "Beta"),
            ("/documentation/videos/foo", "Video walkthrough"),
            ("https://other.example.org/documentation/x", "Elsewhere"),
            ("/account/", "Account"),
        ),
        f"{ORIGIN}/documentation/alpha": page(
            ("/documentation/beta", "Beta overview"),
            ("/documentation/", "Documentation home"),
            ("/documentation/gamma#section", "Gamma"),
        ),
        f"{ORIGIN}/documentation/beta": page(
            ("/documentation/alpha", "Alpha"),
            ("/documentation/gamma", "Gamma details"),
        ),
        f"{ORIGIN}/documentation/gamma": page(
            ("/documentation/swift", "Swift Concurrency"),
        ),
    }


@pytest.fixture
def renderer(site_pages):
    return SyntheticRenderer(site_pages)


@pytest.fixture
def crawler(renderer):
    return DocumentationCrawler(renderer, site_origin=ORIGIN, request_delay=0)


@pytest.fixture
def encoder():
    return KeywordEncoder()


@pytest.fixture
def embedding_service(encoder):
    return EmbeddingService(encoder, batch_size=3, batch_delay=0)
