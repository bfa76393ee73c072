"""
Real-time progress channel.
Clients send {"action": "join" | "leave", "jobId": ...} and receive
{"event": <name>, "data": <payload>} messages for the jobs they joined.
"""
import asyncio
import json
import logging
from typing import Optional
from fastapi import APIRouter, HTTPException, Query, WebSocket, WebSocketDisconnect, status
from src.core.auth_dependencies import decode_token
from src.core.dependencies import get_progress_publisher
from src.services.progress_service import WebSocketSubscriber

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/bulk-upload")

USAGE = "Expected {\"action\": \"join\"|\"leave\", \"jobId\": ...}"


@router.websocket("/progress/ws")
async def progress_channel(websocket: WebSocket, token: Optional[str] = Query(default=None)):
    try:
        user_id = decode_token(token or "")
    except HTTPException:
        await websocket.close(code=status.WS_1008_POLICY_VIOLATION)
        return

    await websocket.accept()
    publisher = get_progress_publisher()
    subscriber = WebSocketSubscriber(websocket)
    publisher.connect(subscriber)
    pump = asyncio.create_task(subscriber.pump())
    logger.info("Progress channel opened for user %s", user_id)

    try:
        while True:
            raw = await websocket.receive_text()
            try:
                message = json.loads(raw)
            except ValueError:
                message = None
            if not isinstance(message, dict):
                message = {}
            action = message.get("action")
            job_id = message.get("jobId")
            if not isinstance(job_id, str) or not job_id or action not in ("join", "leave"):
                subscriber.deliver("Error", {"message": USAGE})
                continue
            if action == "join":
                publisher.join(subscriber, job_id)
                subscriber.deliver("Joined", {"jobId": job_id})
            else:
                publisher.leave(subscriber, job_id)
                subscriber.deliver("Left", {"jobId": job_id})
    except WebSocketDisconnect:
        logger.info("Progress channel closed for user %s", user_id)
    finally:
        publisher.disconnect(subscriber)
        pump.cancel()
