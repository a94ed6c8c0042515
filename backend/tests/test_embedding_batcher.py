"""
Unit tests for EmbeddingBatcher and its submitters
"""
from unittest.mock import AsyncMock, MagicMock

import pytest
from hypothesis import given, settings, strategies as st

from quiz_proctor.models.data_models import FaceSample, SampleMarker
from quiz_proctor.services.embedding_batcher import (
    AttemptSubmitter,
    BulkVerifySubmitter,
    EmbeddingBatcher,
)

DESCRIPTOR = [0.1] * 128


def face_sample(timestamp=0.0):
    return FaceSample(marker=SampleMarker.FACE, descriptor=DESCRIPTOR, timestamp=timestamp)


class TestEmbeddingBatcher:
    """Test buffering and batch submission"""

    def test_rejects_empty_batch_size(self):
        with pytest.raises(ValueError):
            EmbeddingBatcher(AsyncMock(), batch_size=0)

    @pytest.mark.asyncio
    async def test_submits_every_five_samples(self):
        submit = AsyncMock()
        batcher = EmbeddingBatcher(submit)

        results = [await batcher.add(face_sample()) for _ in range(5)]

        assert results == [False, False, False, False, True]
        submit.assert_awaited_once()
        assert len(submit.await_args.args[0]) == 5
        assert batcher.pending == 0
        assert batcher.batches_sent == 1

    @pytest.mark.asyncio
    async def test_markers_fill_batches_like_faces(self):
        submit = AsyncMock()
        batcher = EmbeddingBatcher(submit, batch_size=3)

        await batcher.add(face_sample())
        await batcher.add(FaceSample(marker=SampleMarker.NO_FACE))
        await batcher.add(FaceSample(marker=SampleMarker.MULTIPLE_FACES))

        batch = submit.await_args.args[0]
        assert [s.marker for s in batch] == [
            SampleMarker.FACE, SampleMarker.NO_FACE, SampleMarker.MULTIPLE_FACES
        ]

    @pytest.mark.asyncio
    async def test_buffer_cleared_when_submit_fails(self):
        submit = AsyncMock(side_effect=RuntimeError("backend down"))
        batcher = EmbeddingBatcher(submit, batch_size=2)

        await batcher.add(face_sample())
        sent = await batcher.add(face_sample())

        assert sent is False
        assert batcher.pending == 0
        assert batcher.batches_failed == 1
        assert batcher.batches_sent == 0

    @pytest.mark.asyncio
    async def test_flush_sends_partial_batch(self):
        submit = AsyncMock()
        batcher = EmbeddingBatcher(submit)
        await batcher.add(face_sample())
        await batcher.add(face_sample())

        assert await batcher.flush() is True
        assert len(submit.await_args.args[0]) == 2
        assert batcher.pending == 0

    @pytest.mark.asyncio
    async def test_flush_empty_is_noop(self):
        submit = AsyncMock()
        batcher = EmbeddingBatcher(submit)

        assert await batcher.flush() is False
        submit.assert_not_awaited()

    @pytest.mark.property_test
    @pytest.mark.asyncio
    @given(count=st.integers(min_value=0, max_value=60), size=st.integers(min_value=1, max_value=10))
    @settings(max_examples=100)
    async def test_batches_never_exceed_size(self, count, size):
        """Every submitted batch is exactly batch_size; the remainder stays pending"""
        submit = AsyncMock()
        batcher = EmbeddingBatcher(submit, batch_size=size)

        for _ in range(count):
            await batcher.add(face_sample())

        assert submit.await_count == count // size
        for call in submit.await_args_list:
            assert len(call.args[0]) == size
        assert batcher.pending == count % size


class TestAttemptSubmitter:
    """Test /submitattempt payloads"""

    @pytest.fixture
    def backend(self):
        backend = MagicMock()
        backend.submit_attempt = AsyncMock(return_value={"ok": True})
        return backend

    @pytest.mark.asyncio
    async def test_plain_descriptors_and_markers(self, backend):
        submitter = AttemptSubmitter(backend, "alice", "t-1")
        batch = [face_sample(0.0), FaceSample(marker=SampleMarker.NO_FACE, timestamp=2.0)]

        await submitter(batch)

        backend.submit_attempt.assert_awaited_once_with(
            "alice",
            "t-1",
            embeddings=[DESCRIPTOR, "no_face"],
            timestamps=["1970-01-01T00:00:00+00:00", "1970-01-01T00:00:02+00:00"]
        )

    @pytest.mark.asyncio
    async def test_encrypts_only_descriptors(self, backend):
        cipher = MagicMock()
        cipher.has_key = True
        cipher.encrypt_embedding.return_value = {"alg": "x"}
        submitter = AttemptSubmitter(backend, "alice", "t-1", cipher)

        await submitter([face_sample(), FaceSample(marker=SampleMarker.MULTIPLE_FACES)])

        embeddings = backend.submit_attempt.await_args.kwargs["embeddings"]
        assert embeddings == [{"alg": "x"}, "multiple_faces"]
        cipher.encrypt_embedding.assert_called_once_with(DESCRIPTOR)

    def test_cipher_without_key_sends_plain(self, backend):
        cipher = MagicMock()
        cipher.has_key = False
        submitter = AttemptSubmitter(backend, "alice", "t-1", cipher)

        assert submitter.encode_sample(face_sample()) == DESCRIPTOR


class TestBulkVerifySubmitter:
    """Test /bulkverify payloads"""

    @pytest.mark.asyncio
    async def test_sends_embeddings(self):
        backend = MagicMock()
        backend.bulk_verify = AsyncMock(return_value={"results": []})

        await BulkVerifySubmitter(backend)([face_sample(), FaceSample(marker=SampleMarker.NO_FACE)])

        backend.bulk_verify.assert_awaited_once_with([DESCRIPTOR, "no_face"])
