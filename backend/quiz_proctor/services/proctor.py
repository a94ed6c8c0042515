"""
Periodic face sampling during a quiz
"""
import asyncio
import logging
import time
from typing import Awaitable, Callable, Optional

import numpy as np

from ..models.data_models import FaceSample, ProctorFeedback, SampleMarker
from .alerts import ViolationNotifier
from .embedding_batcher import EmbeddingBatcher
from .face_analyzer import FaceAnalyzer
from .face_encoder import FaceEncoder

logger = logging.getLogger(__name__)


class ProctorMonitor:
    """
    Samples frames while a quiz is running.

    Each tick counts faces, records a sample (descriptor, or a marker for
    zero or multiple faces) into the batcher and produces the feedback shown
    to the user. Only one tick runs at a time; a tick that arrives while the
    previous detection is still running is dropped.
    """

    def __init__(
        self,
        analyzer: FaceAnalyzer,
        encoder: FaceEncoder,
        batcher: EmbeddingBatcher,
        notifier: Optional[ViolationNotifier] = None
    ):
        self.analyzer = analyzer
        self.encoder = encoder
        self.batcher = batcher
        self.notifier = notifier or ViolationNotifier()
        self.tick_count = 0
        self.skipped_ticks = 0
        self.last_feedback: Optional[ProctorFeedback] = None
        self._in_flight = False
        self._idle: Optional[asyncio.Event] = None
        self._stopped = False

    @property
    def violation_count(self) -> int:
        return self.notifier.violations

    @property
    def busy(self) -> bool:
        return self._in_flight

    def _sample(self, frame: np.ndarray):
        """Blocking part of a tick; runs in a worker thread"""
        faces = self.analyzer.detect_faces(frame)
        descriptor = None
        if len(faces) == 1:
            left_ear, right_ear = self.analyzer.eye_aspect_ratios(faces[0])
            logger.debug(f"EAR left={left_ear:.3f} right={right_ear:.3f}")
            descriptor = self.encoder.encode(frame)
        return len(faces), descriptor

    async def tick(self, frame: np.ndarray) -> Optional[ProctorFeedback]:
        """
        Run one sampling tick.

        Returns:
            The feedback for this tick, or None when it was skipped because
            the previous one is still in flight
        """
        if self._in_flight:
            self.skipped_ticks += 1
            logger.debug("Previous detection still running; tick skipped")
            return None

        self._in_flight = True
        self._idle = asyncio.Event()
        try:
            face_count, descriptor = await asyncio.to_thread(self._sample, frame)
            self.tick_count += 1
            feedback = self.notifier.notify(face_count)

            if feedback.marker == SampleMarker.FACE:
                if descriptor is None:
                    logger.debug("Face found but no descriptor computed; sample dropped")
                else:
                    await self.batcher.add(FaceSample(marker=SampleMarker.FACE, descriptor=descriptor))
            else:
                await self.batcher.add(FaceSample(marker=feedback.marker))

            self.last_feedback = feedback
            return feedback
        finally:
            self._in_flight = False
            self._idle.set()

    async def finish(self) -> None:
        """Wait for a running tick, then submit any partial batch"""
        self._stopped = True
        if self._in_flight and self._idle is not None:
            await self._idle.wait()
        await self.batcher.flush()

    def stop(self) -> None:
        self._stopped = True

    async def run(
        self,
        read_frame: Callable[[], Optional[np.ndarray]],
        interval: float,
        on_feedback: Optional[Callable[[ProctorFeedback], Awaitable[None]]] = None
    ) -> None:
        """
        Tick every `interval` seconds until stop() or finish() is called.

        Args:
            read_frame: returns the latest frame, or None if none is available
            interval: seconds between ticks
            on_feedback: awaited with every tick's feedback
        """
        self._stopped = False
        while not self._stopped:
            started = time.monotonic()
            frame = read_frame()
            if frame is not None:
                feedback = await self.tick(frame)
                if feedback is not None and on_feedback is not None:
                    await on_feedback(feedback)
            await asyncio.sleep(max(0.0, interval - (time.monotonic() - started)))
