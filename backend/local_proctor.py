#!/usr/bin/env python3
"""
Proctor from a webcam attached to this machine.

Runs the blink liveness check, optionally registers the face with the
backend, then samples the camera every PROCTOR_INTERVAL_SECONDS with an
OpenCV preview window. Violations turn the preview red and ring the terminal
bell. Press q to stop.
"""

import argparse
import asyncio
import logging
import sys
import time

import cv2

from quiz_proctor.config import Config
from quiz_proctor.exceptions import QuizProctorError
from quiz_proctor.services.alerts import draw_overlay, ring_bell
from quiz_proctor.services.backend_client import BackendClient
from quiz_proctor.services.camera import WebcamCapture
from quiz_proctor.services.embedding_batcher import (
    AttemptSubmitter,
    BulkVerifySubmitter,
    EmbeddingBatcher,
)
from quiz_proctor.services.embedding_cipher import EmbeddingCipher
from quiz_proctor.services.face_analyzer import FaceAnalyzer
from quiz_proctor.services.face_encoder import FaceEncoder
from quiz_proctor.services.liveness import BlinkDetector, LivenessCheck
from quiz_proctor.services.model_store import ModelStore
from quiz_proctor.services.proctor import ProctorMonitor

logger = logging.getLogger("local_proctor")

WINDOW = "Quiz Proctor"


def wait_for_liveness(camera: WebcamCapture, liveness: LivenessCheck):
    """Show the preview until enough blinks are seen. Returns the last frame, or None if aborted."""
    frame = None
    while not liveness.is_live:
        started = time.monotonic()
        frame = camera.read()
        if frame is not None:
            count = liveness.process_frame(frame)
            preview = frame.copy()
            cv2.putText(
                preview,
                f"Blink your eyes twice to register ({count}/{liveness.detector.required_blinks})",
                (8, 22), cv2.FONT_HERSHEY_SIMPLEX, 0.55, (255, 255, 255), 1, cv2.LINE_AA
            )
            cv2.imshow(WINDOW, preview)
        if cv2.waitKey(1) & 0xFF == ord('q'):
            return None
        time.sleep(max(0.0, Config.LIVENESS_INTERVAL_SECONDS - (time.monotonic() - started)))
    return frame


async def run(args) -> int:
    store = ModelStore(Config.MODEL_CACHE_PATH)
    models = await store.ensure_models(Config.model_sources())
    if "face_landmarker" not in models:
        print("✗ Face landmarker model unavailable. Run: python download_mediapipe_model.py")
        return 1

    analyzer = FaceAnalyzer(model_buffer=models["face_landmarker"], max_faces=Config.MAX_FACES)
    encoder = FaceEncoder()
    backend = BackendClient(Config.BACKEND_URL, timeout=Config.REQUEST_TIMEOUT_SECONDS)
    cipher = None

    try:
        if Config.ENCRYPT_EMBEDDINGS and not args.offline:
            cipher = EmbeddingCipher(await backend.get_public_key())

        with WebcamCapture(Config.CAMERA_INDEX) as camera:
            liveness = LivenessCheck(
                analyzer,
                BlinkDetector(threshold=Config.EAR_THRESHOLD, required_blinks=Config.REQUIRED_BLINKS)
            )
            frame = wait_for_liveness(camera, liveness)
            if frame is None:
                print("Aborted.")
                return 1
            print("✓ Liveness confirmed")

            if args.register and not args.offline:
                descriptor = encoder.encode(frame)
                if descriptor is None:
                    print("✗ No face detected for registration")
                    return 1
                embedding = cipher.encrypt_embedding(descriptor) if cipher else descriptor
                await backend.register(args.username, embedding)
                print(f"✓ Registered {args.username}")

            if args.offline:
                async def submit(batch):
                    logger.info(f"Batch of {len(batch)}: {[s.marker.value for s in batch]}")
            elif args.test_id:
                submit = AttemptSubmitter(backend, args.username, args.test_id, cipher)
            else:
                submit = BulkVerifySubmitter(backend, cipher)

            monitor = ProctorMonitor(
                analyzer, encoder,
                EmbeddingBatcher(submit, batch_size=Config.EMBEDDING_BATCH_SIZE)
            )
            latest = {}

            def read_frame():
                latest["frame"] = camera.read()
                return latest["frame"]

            async def show(feedback):
                if latest.get("frame") is not None:
                    cv2.imshow(WINDOW, draw_overlay(latest["frame"].copy(), feedback))
                if feedback.play_alert:
                    ring_bell()
                if cv2.waitKey(1) & 0xFF == ord('q'):
                    monitor.stop()

            print("Proctoring started. Press q in the preview window to stop.")
            try:
                await monitor.run(read_frame, Config.PROCTOR_INTERVAL_SECONDS, on_feedback=show)
            finally:
                await monitor.finish()

            print(f"\nTicks: {monitor.tick_count}, violations: {monitor.violation_count}")
            return 0

    except QuizProctorError as e:
        print(f"✗ {e.message}")
        return 1
    finally:
        await backend.aclose()
        analyzer.close()
        cv2.destroyAllWindows()


def main():
    parser = argparse.ArgumentParser(description="Webcam liveness check and proctoring")
    parser.add_argument("username")
    parser.add_argument("--register", action="store_true", help="register the face after the liveness check")
    parser.add_argument("--test-id", help="submit samples to /submitattempt for this test")
    parser.add_argument("--offline", action="store_true", help="do not contact the backend")
    args = parser.parse_args()

    logging.basicConfig(
        level=Config.LOG_LEVEL,
        format="%(asctime)s %(levelname)s %(name)s: %(message)s"
    )
    return asyncio.run(run(args))


if __name__ == "__main__":
    sys.exit(main())
