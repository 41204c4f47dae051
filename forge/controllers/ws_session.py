import asyncio
import json
import logging
import uuid
from datetime import UTC, datetime
from typing import Any

from fastapi import APIRouter, WebSocket, WebSocketDisconnect
from pydantic import ValidationError

from forge import state
from forge.auth import token_matches
from forge.bus import STANDALONE_ROOM, EventBus
from forge.config import get_settings
from forge.errors import TooManyRequestsError
from forge.events import AckEvent, ExecutionResultEvent, PingEvent, RunCodeMessage
from forge.sandbox import ExecutionRequest

router = APIRouter()
logger = logging.getLogger("forge.ws.session")

HEARTBEAT_INTERVAL_SEC = 25


@router.websocket("/ws/session/{room}")
async def websocket_session(
    websocket: WebSocket,
    room: str,
    user_name: str | None = None,
    token: str | None = None,
):
    if not token_matches(token):
        await websocket.close(code=1008)
        return
    coordinator = state.coordinator
    admission = state.admission
    if not get_settings().sandbox.enabled or coordinator is None or admission is None:
        await websocket.close(code=1013)
        return

    conn_id = uuid.uuid4().hex[:12]
    caller_key = user_name or f"anon_{conn_id[:8]}"
    executed_by = user_name or "Anonymous"
    broadcast = room != STANDALONE_ROOM and state.event_bus is not None

    # subscribe before accepting so a connected client never misses a result
    pubsub = None
    if broadcast:
        pubsub = state.redis_client.pubsub()
        await pubsub.subscribe(EventBus.session_channel(room))
    await websocket.accept()
    logger.info("session socket open room=%s conn=%s user=%s", room, conn_id, executed_by)

    send_lock = asyncio.Lock()

    async def send(payload: dict[str, Any]) -> None:
        try:
            async with send_lock:
                await websocket.send_text(json.dumps(payload))
        except (WebSocketDisconnect, RuntimeError):
            logger.debug("send on closed socket conn=%s", conn_id)

    async def relay_room_results():
        try:
            async for message in pubsub.listen():
                if message["type"] != "message":
                    continue
                event = json.loads(message["data"])
                if event.get("origin") == conn_id:
                    continue
                await send(event)
        except asyncio.CancelledError:
            raise
        except Exception as e:
            logger.warning("room relay stopped room=%s conn=%s: %s", room, conn_id, e)

    async def heartbeat():
        while True:
            await asyncio.sleep(HEARTBEAT_INTERVAL_SEC)
            await send(PingEvent(type="ping"))

    async def run_code(message: RunCodeMessage) -> None:
        msg_id = message.get("id")
        try:
            request = ExecutionRequest.model_validate(message)
        except ValidationError as e:
            await send(AckEvent(type="ack", id=msg_id, error=f"Invalid run_code payload: {e.error_count()} error(s)"))
            return

        try:
            async with admission.admit(caller_key):
                result = await coordinator.execute(request, caller=executed_by)
        except TooManyRequestsError as e:
            await send(AckEvent(type="ack", id=msg_id, error=e.detail))
            return

        wire = result.to_wire()
        if broadcast:
            event = ExecutionResultEvent(
                type="execution_result",
                room=room,
                origin=conn_id,
                result=wire,
                timestamp=datetime.now(UTC).isoformat(),
            )
            try:
                await state.event_bus.publish_result(room, event)
            except Exception as e:
                # the caller still gets its ack
                logger.warning("broadcast failed room=%s: %s", room, e)
        await send(AckEvent(type="ack", id=msg_id, result=wire))

    background = [asyncio.create_task(heartbeat())]
    if pubsub is not None:
        background.append(asyncio.create_task(relay_room_results()))
    executions: set[asyncio.Task] = set()

    try:
        while True:
            frame = await websocket.receive()
            if frame["type"] == "websocket.disconnect":
                raise WebSocketDisconnect(frame.get("code", 1000))
            raw = frame.get("text")
            if raw is None:
                await send(AckEvent(type="ack", id=None, error="Binary frames are not supported"))
                continue
            try:
                message = json.loads(raw)
            except json.JSONDecodeError:
                await send(AckEvent(type="ack", id=None, error="Invalid JSON"))
                continue
            if not isinstance(message, dict) or message.get("type") != "run_code":
                msg_id = message.get("id") if isinstance(message, dict) else None
                await send(AckEvent(type="ack", id=msg_id, error="Unsupported message type"))
                continue
            logger.info("run_code room=%s user=%s language=%s", room, executed_by, message.get("language"))
            task = asyncio.create_task(run_code(message))
            executions.add(task)
            task.add_done_callback(executions.discard)
    except WebSocketDisconnect:
        pass
    finally:
        pending = list(executions)
        # cancel before the first await, which may itself be cancelled
        for task in (*pending, *background):
            task.cancel()
        if pending:
            logger.info("cancelling %d execution(s) on disconnect conn=%s", len(pending), conn_id)
            await asyncio.gather(*pending, return_exceptions=True)
        if pubsub is not None:
            await pubsub.unsubscribe(EventBus.session_channel(room))
            if hasattr(pubsub, "aclose"):
                await pubsub.aclose()
            else:
                await pubsub.close()
        logger.info("session socket closed room=%s conn=%s", room, conn_id)
