# DocScout Embeddings Module
# Turns crawled text into vectors with a sentence transformer model

import asyncio
import logging
import threading
import time
from typing import List, Optional, Protocol, Sequence

import torch
from sentence_transformers import SentenceTransformer

from observability.metrics import record_embedding
from .models import EmbeddingVector

logger = logging.getLogger(__name__)

DEFAULT_MODEL_NAME = "BAAI/bge-small-en-v1.5"
DEFAULT_TOKEN_WINDOW = 16
DEFAULT_BATCH_SIZE = 3
DEFAULT_BATCH_DELAY = 0.2


class EmbeddingError(Exception):
    """Raised when a text cannot be turned into a vector."""
    pass


class TextEncoder(Protocol):
    """Anything that turns one text into a fixed-length vector, or raises."""

    def encode(self, text: str) -> Sequence[float]:
        ...


class SentenceTransformerEncoder:
    """Text encoder backed by a lazily loaded sentence transformer model"""

    def __init__(self, model_name: str = DEFAULT_MODEL_NAME,
                 token_window: int = DEFAULT_TOKEN_WINDOW,
                 device: Optional[str] = None):
        """
        Initialize the encoder. The model itself is loaded on first use.

        Args:
            model_name: Sentence transformer model name
            token_window: Fixed number of tokens each text is truncated or padded to
            device: Torch device for inference (None lets the library choose)
        """
        self.model_name = model_name
        self.token_window = token_window
        self.device = device
        self._model: Optional[SentenceTransformer] = None
        self._lock = threading.Lock()

    @property
    def is_loaded(self) -> bool:
        return self._model is not None

    def _get_model(self) -> SentenceTransformer:
        """Load the model at most once; a failed load is retried on the next call"""
        if self._model is not None:
            return self._model

        with self._lock:
            if self._model is None:
                logger.info(f"Loading embedding model: {self.model_name}")
                try:
                    model = SentenceTransformer(self.model_name, device=self.device)
                except Exception as e:
                    logger.error(f"Failed to load embedding model: {e}")
                    raise
                model.max_seq_length = self.token_window
                self._model = model
                logger.info(f"Model loaded successfully. Embedding dimension: {model.get_sentence_embedding_dimension()}")

        return self._model

    def encode(self, text: str) -> EmbeddingVector:
        """Generate a normalized embedding for a single text"""
        model = self._get_model()

        encoded = model.tokenizer(
            text,
            padding="max_length",
            truncation=True,
            max_length=self.token_window,
            return_tensors="pt",
        )
        pad_id = model.tokenizer.pad_token_id
        if pad_id is None:
            pad_id = model.tokenizer.eos_token_id or 0

        features = dict(encoded)
        features["attention_mask"] = (encoded["input_ids"] != pad_id).long()
        features = {key: value.to(model.device) for key, value in features.items()}

        with torch.no_grad():
            output = model(features)

        pooled = torch.nn.functional.normalize(output["sentence_embedding"], p=2, dim=1)
        return pooled[0].cpu().tolist()


class EmbeddingService:
    """Batched, paced embedding of crawled texts"""

    def __init__(self, encoder: TextEncoder,
                 batch_size: int = DEFAULT_BATCH_SIZE,
                 batch_delay: float = DEFAULT_BATCH_DELAY):
        """
        Args:
            encoder: Text encoder capability
            batch_size: Number of texts embedded between pacing pauses
            batch_delay: Seconds to pause after each batch
        """
        if batch_size <= 0:
            raise ValueError("Batch size must be positive")
        if batch_delay < 0:
            raise ValueError("Batch delay cannot be negative")

        self.encoder = encoder
        self.batch_size = batch_size
        self.batch_delay = batch_delay
        self.dimension: Optional[int] = None

    async def embed(self, text: str) -> EmbeddingVector:
        """Generate an embedding for a single text.

        Raises:
            EmbeddingError: If the encoder fails or returns an unusable vector
        """
        loop = asyncio.get_running_loop()
        start_time = time.time()

        try:
            raw = await loop.run_in_executor(None, self.encoder.encode, text)
            vector = [float(value) for value in raw]
        except Exception as e:
            record_embedding("failed")
            raise EmbeddingError(f"Failed to embed text {text[:100]!r}: {e}") from e

        if not vector:
            record_embedding("failed")
            raise EmbeddingError(f"Encoder returned an empty vector for {text[:100]!r}")

        if self.dimension is None:
            self.dimension = len(vector)
        elif len(vector) != self.dimension:
            record_embedding("failed")
            raise EmbeddingError(
                f"Encoder returned {len(vector)} dimensions, expected {self.dimension}"
            )

        record_embedding("success", time.time() - start_time)
        return vector

    async def embed_many(self, texts: List[str],
                         batch_size: Optional[int] = None) -> List[Optional[EmbeddingVector]]:
        """Embed texts in paced batches, keeping positions aligned with the input.

        Failed texts are logged and left as None.
        """
        if batch_size is None:
            batch_size = self.batch_size
        elif batch_size <= 0:
            raise ValueError("Batch size must be positive")
        total_batches = (len(texts) + batch_size - 1) // batch_size
        logger.info(f"Creating embeddings for {len(texts)} texts with batch size {batch_size}")

        results: List[Optional[EmbeddingVector]] = []
        for start in range(0, len(texts), batch_size):
            batch = texts[start:start + batch_size]
            logger.debug(f"Processing batch {start // batch_size + 1} of {total_batches}")

            for text in batch:
                try:
                    results.append(await self.embed(text))
                except EmbeddingError as e:
                    logger.warning(f"Skipping text: {e}")
                    results.append(None)

            if self.batch_delay:
                await asyncio.sleep(self.batch_delay)

        succeeded = sum(1 for vector in results if vector is not None)
        logger.info(f"Created {succeeded} embeddings ({len(texts) - succeeded} failed)")
        return results

    async def embed_batch(self, texts: List[str],
                          batch_size: Optional[int] = None) -> List[EmbeddingVector]:
        """Embed texts in paced batches, dropping the ones that fail.

        Output order follows input order; the output may be shorter than the input.
        """
        vectors = await self.embed_many(texts, batch_size)
        return [vector for vector in vectors if vector is not None]
