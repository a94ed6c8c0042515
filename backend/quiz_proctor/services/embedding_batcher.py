"""
Rolling buffer of proctoring samples, submitted in fixed-size batches
"""
import logging
from typing import Awaitable, Callable, List, Optional

from ..models.data_models import FaceSample, SampleMarker
from .backend_client import BackendClient
from .embedding_cipher import EmbeddingCipher

logger = logging.getLogger(__name__)


SubmitFn = Callable[[List[FaceSample]], Awaitable[object]]


class EmbeddingBatcher:
    """
    Buffers samples and hands them to `submit` every `batch_size` samples.

    The buffer is cleared after every submission attempt, successful or
    not; submission is best effort.
    """

    def __init__(self, submit: SubmitFn, batch_size: int = 5):
        if batch_size < 1:
            raise ValueError("batch_size must be at least 1")
        self.submit = submit
        self.batch_size = batch_size
        self._samples: List[FaceSample] = []
        self.batches_sent = 0
        self.batches_failed = 0

    @property
    def pending(self) -> int:
        return len(self._samples)

    async def add(self, sample: FaceSample) -> bool:
        """
        Returns:
            bool: True if this sample completed a batch and it was submitted
        """
        self._samples.append(sample)
        if len(self._samples) >= self.batch_size:
            return await self.flush()
        return False

    async def flush(self) -> bool:
        """Submit whatever is buffered. Returns False when empty or on failure."""
        if not self._samples:
            return False

        batch = self._samples
        self._samples = []
        try:
            await self.submit(batch)
        except Exception as e:
            self.batches_failed += 1
            logger.error(f"Failed to send {len(batch)} samples: {e}")
            return False

        self.batches_sent += 1
        return True


class AttemptSubmitter:
    """Submits sample batches of one quiz attempt to /submitattempt"""

    def __init__(
        self,
        backend: BackendClient,
        username: str,
        test_id: str,
        cipher: Optional[EmbeddingCipher] = None
    ):
        self.backend = backend
        self.username = username
        self.test_id = test_id
        self.cipher = cipher

    def encode_sample(self, sample: FaceSample):
        if sample.marker == SampleMarker.FACE and self.cipher is not None and self.cipher.has_key:
            return self.cipher.encrypt_embedding(sample.descriptor)
        return sample.payload()

    async def __call__(self, batch: List[FaceSample]):
        return await self.backend.submit_attempt(
            self.username,
            self.test_id,
            embeddings=[self.encode_sample(sample) for sample in batch],
            timestamps=[sample.iso_timestamp for sample in batch]
        )


class BulkVerifySubmitter:
    """Submits sample batches to /bulkverify when there is no quiz attempt"""

    def __init__(self, backend: BackendClient, cipher: Optional[EmbeddingCipher] = None):
        self.backend = backend
        self.cipher = cipher

    async def __call__(self, batch: List[FaceSample]):
        embeddings = []
        for sample in batch:
            if sample.marker == SampleMarker.FACE and self.cipher is not None and self.cipher.has_key:
                embeddings.append(self.cipher.encrypt_embedding(sample.descriptor))
            else:
                embeddings.append(sample.payload())
        return await self.backend.bulk_verify(embeddings)
