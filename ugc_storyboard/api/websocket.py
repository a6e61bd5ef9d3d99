"""WebSocket handler driving a storyboard session in real time"""

import json
import logging
from datetime import datetime
from typing import Any, Dict, Optional

from fastapi import WebSocket
from pydantic import ValidationError
from starlette.websockets import WebSocketDisconnect

from ..core.errors import MissingCredentialError, StoryboardError, describe_error
from ..core.request import request_from_payload
from ..core.session import StoryboardSession
from .api_types import WebSocketMessage

logger = logging.getLogger(__name__)


class StoryboardWebSocketHandler:
    """Handles one WebSocket connection bound to one StoryboardSession"""

    def __init__(self, websocket: WebSocket, session: StoryboardSession):
        self.websocket = websocket
        self.session = session
        self.is_closing = False

    async def handle(self):
        """Main WebSocket message handler"""
        try:
            if not self.session.credentials.is_set:
                await self.send_event("credential_required", {"message": MissingCredentialError.user_message})

            while True:
                raw_data = await self.websocket.receive_text()
                try:
                    message = WebSocketMessage.model_validate(json.loads(raw_data))
                except (json.JSONDecodeError, ValidationError) as e:
                    logger.warning(f"[WebSocket] Invalid message: {e}")
                    await self.send_event("error", {"code": "invalid_message", "message": "Invalid message format"})
                    continue

                logger.info(f"[WebSocket] Received message type: {message.type}")

                # Route based on message type
                if message.type == "set_credential":
                    await self.set_credential(message.api_key)
                elif message.type == "generate":
                    await self.generate(message.request)
                elif message.type == "regenerate_text":
                    await self.regenerate_text()
                elif message.type == "regenerate_frame":
                    await self.regenerate_frame(message.frame_id)
                elif message.type == "get_state":
                    await self.send_event("state", self.session.snapshot())
                elif message.type == "ping":
                    await self.send_event("pong")
                else:
                    await self.send_event("error", {
                        "code": "unknown_message_type",
                        "message": f"Unknown message type: {message.type}"
                    })

        except WebSocketDisconnect:
            self.is_closing = True
            logger.info("[WebSocket] Client disconnected")
        except Exception as e:
            self.is_closing = True
            logger.exception(f"[WebSocket] Handler error: {e}")
            raise

    async def send_event(self, event_type: str, data: Optional[Dict[str, Any]] = None):
        """Send event to WebSocket client"""
        if self.is_closing:
            return
        await self.websocket.send_text(json.dumps({
            "type": event_type,
            "timestamp": datetime.now().isoformat(),
            "data": data or {}
        }, default=str))

    async def send_error(self, exc: BaseException):
        code, message = describe_error(exc)
        await self.send_event("error", {"code": code, "message": message})
        if isinstance(exc, MissingCredentialError) or not self.session.credentials.is_set:
            await self.send_event("credential_required", {"message": MissingCredentialError.user_message})

    async def on_progress(self, message: str, current_step: int, total_steps: int):
        await self.send_event("progress", {
            "message": message,
            "current_step": current_step,
            "total_steps": total_steps,
            "percent": round(current_step / total_steps * 100)
        })

    async def set_credential(self, api_key: Optional[str]):
        try:
            self.session.credentials.set(api_key)
        except MissingCredentialError as e:
            await self.send_error(e)
            return
        await self.send_event("credential_accepted")

    async def generate(self, payload: Optional[Dict[str, Any]]):
        try:
            request = request_from_payload(payload or {})
            result = await self.session.generate(request, self.on_progress)
        except StoryboardError as e:
            logger.warning(f"[WebSocket] Generation failed: {type(e).__name__}: {e}")
            await self.send_error(e)
            return
        await self.send_event("storyboard_complete", {"result": result.to_json_dict()})

    async def regenerate_text(self):
        try:
            result = await self.session.regenerate_text()
        except StoryboardError as e:
            logger.warning(f"[WebSocket] Text regeneration failed: {type(e).__name__}: {e}")
            await self.send_error(e)
            return
        await self.send_event("text_regenerated", {
            "hook": result.hook,
            "fullScript": result.full_script,
            "musicPrompt": result.music_prompt
        })

    async def regenerate_frame(self, frame_id: Optional[int]):
        if frame_id is None:
            await self.send_event("error", {"code": "invalid_message", "message": "frame_id is required"})
            return
        try:
            result = await self.session.regenerate_frame(frame_id)
        except StoryboardError as e:
            logger.warning(f"[WebSocket] Frame {frame_id} regeneration failed: {type(e).__name__}: {e}")
            await self.send_error(e)
            return
        await self.send_event("frame_regenerated", {"frame": result.get_frame(frame_id).to_json_dict()})
