"""
FastAPI application for the proctored trivia quiz
"""
import asyncio
import logging
from contextlib import asynccontextmanager
from dataclasses import asdict
from typing import Optional

from fastapi import FastAPI, WebSocket, WebSocketDisconnect
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from pydantic import BaseModel

from quiz_proctor import __version__
from quiz_proctor.config import Config
from quiz_proctor.exceptions import (
    BackendError,
    OfflineError,
    QuizProctorError,
    QuizStateError,
)
from quiz_proctor.models.data_models import (
    FeedbackType,
    QuizSession,
    QuizStatus,
    VerificationFeedback,
)
from quiz_proctor.services.backend_client import BackendClient
from quiz_proctor.services.embedding_batcher import AttemptSubmitter, EmbeddingBatcher
from quiz_proctor.services.embedding_cipher import EmbeddingCipher
from quiz_proctor.services.face_analyzer import FaceAnalyzer
from quiz_proctor.services.face_encoder import FaceEncoder
from quiz_proctor.services.liveness import BlinkDetector, LivenessCheck
from quiz_proctor.services.model_store import ModelStore
from quiz_proctor.services.proctor import ProctorMonitor
from quiz_proctor.services.quiz_engine import QuizEngine
from quiz_proctor.services.report import build_report_card, render_charts
from quiz_proctor.services.session_manager import SessionManager
from quiz_proctor.services.trivia_client import CATEGORIES, TriviaClient, category_name
from quiz_proctor.services.websocket_handler import ClientMessage, WebSocketHandler

logging.basicConfig(
    level=Config.LOG_LEVEL,
    format="%(asctime)s %(levelname)s %(name)s: %(message)s"
)
logger = logging.getLogger(__name__)


# Services
model_store = ModelStore(Config.MODEL_CACHE_PATH)
face_analyzer = FaceAnalyzer(max_faces=Config.MAX_FACES)
face_encoder = FaceEncoder()
backend_client = BackendClient(Config.BACKEND_URL, timeout=Config.REQUEST_TIMEOUT_SECONDS)
trivia_client = TriviaClient(Config.TRIVIA_API_URL, timeout=Config.REQUEST_TIMEOUT_SECONDS)
embedding_cipher = EmbeddingCipher()
quiz_engine = QuizEngine()
session_manager = SessionManager(completed_ttl_seconds=Config.COMPLETED_SESSION_TTL_SECONDS)
websocket_handler = WebSocketHandler()


@asynccontextmanager
async def lifespan(app: FastAPI):
    models = await model_store.ensure_models(Config.model_sources())
    if "face_landmarker" in models:
        face_analyzer.model_buffer = models["face_landmarker"]
    else:
        logger.warning("Face landmarker unavailable; proctoring will report no faces")
    yield
    await backend_client.aclose()
    await trivia_client.aclose()
    face_analyzer.close()


app = FastAPI(
    title="Quiz Proctor API",
    description="Trivia quiz with webcam liveness registration and proctoring",
    version=__version__,
    lifespan=lifespan
)

app.add_middleware(
    CORSMiddleware,
    allow_origins=Config.CORS_ORIGINS,
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)


def error_response(status_code: int, code: str, message: str, **extra) -> JSONResponse:
    error = {"code": code, "message": message}
    error.update(extra)
    return JSONResponse(status_code=status_code, content={"error": error})


@app.exception_handler(BackendError)
async def backend_error_handler(request, exc: BackendError):
    return error_response(502, exc.code, exc.alert, backend_status=exc.status_code)


@app.exception_handler(QuizProctorError)
async def quiz_proctor_error_handler(request, exc: QuizProctorError):
    return error_response(exc.status_code, exc.code, exc.message)


# Request bodies

class VerifyRequest(BaseModel):
    username: str
    frame: str


class StartQuizRequest(BaseModel):
    username: str
    category: Optional[int] = None


class AnswerRequest(BaseModel):
    index: int
    answer: str


# Helpers

async def ensure_cipher() -> Optional[EmbeddingCipher]:
    """
    Cipher loaded with the backend's public key, or None when encryption is
    switched off. The key is fetched once per process.

    Raises:
        BackendError: the key could not be fetched or is not an RSA PEM key
    """
    if not Config.ENCRYPT_EMBEDDINGS:
        return None
    if not embedding_cipher.has_key:
        public_key = await backend_client.get_public_key()
        try:
            embedding_cipher.load_public_key(public_key)
        except ValueError as e:
            logger.error(f"Backend public key rejected: {e}")
            raise BackendError(502, f"Invalid public key: {e}") from e
        logger.info("Loaded backend public key")
    return embedding_cipher


async def prepare_embedding(descriptor):
    cipher = await ensure_cipher()
    if cipher is None:
        return descriptor
    return cipher.encrypt_embedding(descriptor)


class SessionNotFound(QuizProctorError):
    code = "SESSION_NOT_FOUND"
    status_code = 404

    def __init__(self, session_id: str):
        super().__init__(f"Quiz session {session_id} not found")


def get_session_or_404(session_id: str) -> QuizSession:
    session = session_manager.get_session(session_id)
    if session is None:
        raise SessionNotFound(session_id)
    return session


def quiz_payload(session: QuizSession) -> dict:
    return {
        "session_id": session.session_id,
        "test_id": session.test_id,
        "questions": [question.public_view() for question in session.questions],
        "countdown_seconds": session.countdown_seconds,
        "remaining_seconds": quiz_engine.remaining_seconds(session),
        "websocket_url": f"/ws/proctor/{session.session_id}",
        "frame_interval_ms": int(Config.PROCTOR_INTERVAL_SECONDS * 1000),
    }


# Routes

@app.get("/")
async def root():
    return {
        "message": "Quiz Proctor API",
        "status": "running",
        "version": __version__
    }


@app.get("/health")
async def health_check():
    return {
        "status": "healthy",
        "services": {
            "api": "operational",
            "face_model": "loaded" if face_analyzer.model_buffer or face_analyzer.model_path else "unavailable",
            "active_sessions": len(session_manager),
        }
    }


@app.get("/api/categories")
async def list_categories():
    return {"categories": CATEGORIES}


@app.post("/api/verify")
async def verify_face(request: VerifyRequest):
    """One-off identity check of a single frame against the registered face"""
    if not request.username.strip():
        return error_response(400, "MISSING_USERNAME", "username is required")

    frame = websocket_handler.decode_frame(request.frame)
    if frame is None:
        return error_response(400, "INVALID_FRAME", "Could not decode frame")

    descriptor = await asyncio.to_thread(face_encoder.encode, frame)
    if descriptor is None:
        return error_response(422, "NO_FACE_DETECTED", "No face detected")

    embedding = await prepare_embedding(descriptor)
    is_verified = await backend_client.verify(request.username, embedding)
    return {
        "isVerified": is_verified,
        "message": "Face verified successfully!" if is_verified else "Face verification failed."
    }


@app.post("/api/quiz/start")
async def start_quiz(request: StartQuizRequest):
    if not request.username.strip():
        return error_response(400, "MISSING_USERNAME", "username is required")

    questions = await trivia_client.fetch_questions(
        request.category,
        amount=Config.QUESTION_AMOUNT,
        difficulty=Config.QUESTION_DIFFICULTY,
        qtype=Config.QUESTION_TYPE
    )
    # Before /starttest, so a key failure leaves no remote test behind
    cipher = await ensure_cipher()
    test_id = await backend_client.start_test(
        request.username, category_name(request.category), request.category
    )

    session = quiz_engine.start_quiz(
        request.username,
        questions,
        Config.COUNTDOWN_SECONDS,
        category=request.category,
        test_id=test_id
    )
    batcher = EmbeddingBatcher(
        AttemptSubmitter(backend_client, request.username, test_id, cipher),
        batch_size=Config.EMBEDDING_BATCH_SIZE
    )
    session_manager.add_session(session, ProctorMonitor(face_analyzer, face_encoder, batcher))
    return quiz_payload(session)


@app.post("/api/quiz/{session_id}/answer")
async def answer_question(session_id: str, request: AnswerRequest):
    session = get_session_or_404(session_id)
    quiz_engine.answer(session, request.index, request.answer)
    return {
        "answered": len(session.answers),
        "remaining_seconds": quiz_engine.remaining_seconds(session)
    }


@app.post("/api/quiz/{session_id}/finish")
async def finish_quiz(session_id: str):
    session = get_session_or_404(session_id)
    result = quiz_engine.end_quiz(session)
    await session_manager.end_proctoring(session_id)

    monitor = session_manager.get_monitor(session_id)
    payload = asdict(result)
    payload["score_percentage"] = result.score_percentage
    payload["violations"] = monitor.violation_count if monitor else 0
    payload["test_id"] = session.test_id
    return payload


@app.post("/api/quiz/{session_id}/replay")
async def replay_quiz(session_id: str):
    session = get_session_or_404(session_id)
    if session.status != QuizStatus.COMPLETED:
        raise QuizStateError("Only a finished quiz can be replayed")
    quiz_engine.replay(session)
    return quiz_payload(session)


@app.delete("/api/quiz/{session_id}")
async def reset_quiz(session_id: str):
    if not await session_manager.remove_session(session_id):
        raise SessionNotFound(session_id)
    return {"message": "Thank you for playing!"}


@app.get("/api/report/{username}/{test_id}")
async def get_report(username: str, test_id: str, charts: bool = False):
    report = await backend_client.get_report(username, test_id)
    card = build_report_card(report)
    if charts and card["available"]:
        card["charts"] = await asyncio.to_thread(render_charts, card)
    return card


@app.websocket("/ws/register/{username}")
async def websocket_register(websocket: WebSocket, username: str):
    """
    Liveness-gated face registration.

    The client streams frames every LIVENESS_INTERVAL_SECONDS. Once the
    required number of blinks is seen, a {"type": "register"} message
    registers the descriptor of the latest frame.
    """
    await websocket_handler.handle_connection(websocket, username)

    liveness = LivenessCheck(
        face_analyzer,
        BlinkDetector(threshold=Config.EAR_THRESHOLD, required_blinks=Config.REQUIRED_BLINKS)
    )
    await websocket_handler.send_feedback(websocket, VerificationFeedback(
        type=FeedbackType.SESSION_READY,
        message=f"Blink your eyes {Config.REQUIRED_BLINKS} times to register.",
        data={
            "frame_interval_ms": int(Config.LIVENESS_INTERVAL_SECONDS * 1000),
            "required_blinks": Config.REQUIRED_BLINKS,
        }
    ))

    try:
        while True:
            message = await websocket_handler.receive_message(websocket)
            if message is None:
                await websocket_handler.send_error(websocket, "Invalid message")
                continue

            if message.type == ClientMessage.VIDEO_FRAME:
                was_live = liveness.is_live
                before = liveness.blink_count
                count = await asyncio.to_thread(liveness.process_frame, message.frame)
                if count != before:
                    await websocket_handler.send_feedback(websocket, VerificationFeedback(
                        type=FeedbackType.BLINK_UPDATE,
                        message=f"Blinks: {count}",
                        data={"blink_count": count}
                    ))
                if liveness.is_live and not was_live:
                    await websocket_handler.send_feedback(websocket, VerificationFeedback(
                        type=FeedbackType.LIVENESS_CONFIRMED,
                        message="Liveness confirmed. You can register now.",
                        data={"blink_count": count}
                    ))

            elif message.type == ClientMessage.REGISTER:
                if not liveness.is_live:
                    await websocket_handler.send_error(
                        websocket,
                        f"Blink your eyes {Config.REQUIRED_BLINKS} times to register.",
                        blink_count=liveness.blink_count
                    )
                    continue
                face_frame = liveness.last_face_frame
                if face_frame is None:
                    await websocket_handler.send_error(websocket, "No video frame received")
                    continue

                descriptor = await asyncio.to_thread(face_encoder.encode, face_frame)
                if descriptor is None:
                    await websocket_handler.send_error(websocket, "No face detected")
                    continue

                try:
                    await backend_client.register(username, await prepare_embedding(descriptor))
                except BackendError as e:
                    await websocket_handler.send_error(websocket, e.alert, status=e.status_code)
                    continue
                except OfflineError as e:
                    await websocket_handler.send_error(websocket, e.message)
                    continue

                await websocket_handler.send_feedback(websocket, VerificationFeedback(
                    type=FeedbackType.REGISTERED,
                    message="Face registered.",
                    data={"username": username}
                ))
                await websocket_handler.close_connection(websocket, reason="Registered")
                break

            elif message.type == ClientMessage.STOP:
                await websocket_handler.close_connection(websocket)
                break

    except WebSocketDisconnect:
        logger.info(f"Registration socket for {username} disconnected")


@app.websocket("/ws/proctor/{session_id}")
async def websocket_proctor(websocket: WebSocket, session_id: str):
    """
    Proctoring stream for a running quiz.

    Every frame is handed to the session's ProctorMonitor without blocking
    the receive loop; frames arriving while a detection is in flight are
    dropped by the monitor.
    """
    await websocket_handler.handle_connection(websocket, session_id)

    session = session_manager.get_session(session_id)
    monitor = session_manager.get_monitor(session_id)
    if session is None or monitor is None:
        await websocket_handler.send_error(websocket, "Invalid session")
        await websocket_handler.close_connection(websocket, code=1008, reason="Invalid session")
        return

    await websocket_handler.send_feedback(websocket, VerificationFeedback(
        type=FeedbackType.SESSION_READY,
        message="Proctoring started",
        data={"frame_interval_ms": int(Config.PROCTOR_INTERVAL_SECONDS * 1000)}
    ))

    pending = set()

    async def process(frame):
        try:
            feedback = await monitor.tick(frame)
            if feedback is not None:
                await websocket_handler.send_proctor_feedback(
                    websocket,
                    feedback,
                    violations=monitor.violation_count,
                    remaining_seconds=quiz_engine.remaining_seconds(session)
                )
        except Exception as e:
            logger.error(f"Proctoring tick failed for {session_id}: {e}")

    try:
        while True:
            message = await websocket_handler.receive_message(websocket)
            if message is None:
                continue

            if message.type == ClientMessage.STOP:
                await websocket_handler.close_connection(websocket)
                break

            if message.type != ClientMessage.VIDEO_FRAME:
                continue

            if session.status != QuizStatus.IN_PROGRESS or quiz_engine.is_expired(session):
                await websocket_handler.send_error(websocket, "Quiz is not in progress")
                continue

            task = asyncio.create_task(process(message.frame))
            pending.add(task)
            task.add_done_callback(pending.discard)

    except WebSocketDisconnect:
        logger.info(f"Proctoring socket for {session_id} disconnected")
    finally:
        if pending:
            await asyncio.gather(*pending, return_exceptions=True)
