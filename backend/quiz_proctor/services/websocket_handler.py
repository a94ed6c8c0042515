"""
WebSocket handler for webcam frame streaming and proctoring feedback.

This module provides the WebSocketHandler class that manages WebSocket connections,
decodes the webcam frames the browser streams, and delivers real-time feedback
during registration and the quiz.
"""
from fastapi import WebSocket, WebSocketDisconnect
from typing import Any, Dict, Optional
import logging
import json
import base64
import numpy as np
import cv2

from quiz_proctor.models.data_models import (
    VerificationFeedback,
    FeedbackType,
    ProctorFeedback
)

logger = logging.getLogger(__name__)


class ClientMessage:
    """A parsed message from the browser"""

    VIDEO_FRAME = "video_frame"
    REGISTER = "register"
    STOP = "stop"

    def __init__(self, type: str, frame: Optional[np.ndarray] = None, data: Optional[Dict[str, Any]] = None):
        self.type = type
        self.frame = frame
        self.data = data or {}


class WebSocketHandler:
    """
    Manages WebSocket communication with the browser.

    This class encapsulates all WebSocket-related functionality including:
    - Connection lifecycle management
    - Client message parsing and video frame decoding
    - Proctoring and liveness feedback delivery
    """

    async def handle_connection(
        self,
        websocket: WebSocket,
        session_id: str
    ) -> None:
        """
        Accept the WebSocket connection.

        Args:
            websocket: FastAPI WebSocket connection object
            session_id: Quiz session id or username the socket belongs to
        """
        await websocket.accept()
        logger.info(f"WebSocket connection established for {session_id}")

    async def receive_message(self, websocket: WebSocket) -> Optional[ClientMessage]:
        """
        Receive and parse one message from the client.

        Video frame messages carry a base64 JPEG (optionally a data URL)
        which is decoded into a BGR numpy array.

        Returns:
            ClientMessage, or None if the message is malformed or a frame
            cannot be decoded

        Raises:
            WebSocketDisconnect: the client went away
        """
        try:
            data = await websocket.receive_text()
            message = json.loads(data)
        except WebSocketDisconnect:
            logger.info("WebSocket disconnected while receiving")
            raise
        except json.JSONDecodeError as e:
            logger.error(f"Invalid JSON received: {e}")
            return None

        if not isinstance(message, dict) or "type" not in message:
            logger.error("Message without a type received")
            return None

        message_type = message["type"]
        if message_type == ClientMessage.VIDEO_FRAME:
            frame_data = message.get("frame")
            if not frame_data:
                return None
            frame = self.decode_frame(frame_data)
            if frame is None:
                return None
            return ClientMessage(message_type, frame=frame)

        return ClientMessage(message_type, data=message)

    async def send_feedback(
        self,
        websocket: WebSocket,
        feedback: VerificationFeedback
    ) -> None:
        """
        Send a feedback envelope {type, message, data} to the client.
        """
        try:
            await websocket.send_json({
                "type": feedback.type.value,
                "message": feedback.message,
                "data": feedback.data
            })
            logger.debug(f"Sent feedback: {feedback.type.value}")
        except Exception as e:
            logger.error(f"Error sending feedback: {e}")
            raise

    async def send_proctor_feedback(
        self,
        websocket: WebSocket,
        feedback: ProctorFeedback,
        **extra: Any
    ) -> None:
        """
        Send a proctoring tick result. play_alert tells the browser to sound
        the violation alarm.
        """
        data = {
            "face_count": feedback.face_count,
            "play_alert": feedback.play_alert,
            "marker": feedback.marker.value if feedback.marker else None,
        }
        data.update(extra)
        await self.send_feedback(
            websocket,
            VerificationFeedback(type=feedback.type, message=feedback.message, data=data)
        )

    async def send_error(self, websocket: WebSocket, message: str, **data: Any) -> None:
        await self.send_feedback(
            websocket,
            VerificationFeedback(type=FeedbackType.ERROR, message=message, data=data or None)
        )

    async def close_connection(
        self,
        websocket: WebSocket,
        code: int = 1000,
        reason: str = "Normal closure"
    ) -> None:
        """
        Close the WebSocket connection gracefully.
        """
        try:
            await websocket.close(code=code, reason=reason)
            logger.info(f"WebSocket closed: {reason} (code: {code})")
        except Exception as e:
            logger.error(f"Error closing WebSocket: {e}")

    def decode_frame(self, frame_data: str) -> Optional[np.ndarray]:
        """
        Decode a base64-encoded frame (typically from a browser canvas).

        Args:
            frame_data: Base64-encoded image data (may include data URL prefix)

        Returns:
            Decoded frame as numpy array (BGR format), or None if decoding fails
        """
        try:
            # Remove data URL prefix if present (e.g., "data:image/jpeg;base64,")
            if "," in frame_data:
                frame_data = frame_data.split(",")[1]

            img_bytes = base64.b64decode(frame_data)
            nparr = np.frombuffer(img_bytes, np.uint8)
            frame = cv2.imdecode(nparr, cv2.IMREAD_COLOR)

            if frame is None:
                logger.error("Failed to decode frame: cv2.imdecode returned None")
                return None

            return frame

        except Exception as e:
            logger.error(f"Error decoding frame: {e}")
            return None
