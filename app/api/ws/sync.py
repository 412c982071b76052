import json
import logging

from fastapi import APIRouter, WebSocket, WebSocketDisconnect

from app.domains.collaboration.gateway import CollaborationGateway

logger = logging.getLogger(__name__)

router = APIRouter()


@router.websocket("/ws")
async def websocket_endpoint(websocket: WebSocket):
    """WebSocket эндпоинт совместного редактирования диаграмм"""
    gateway: CollaborationGateway = websocket.app.state.gateway

    await websocket.accept()
    connection = await gateway.connect(websocket)
    logger.info(f"WebSocket accepted, connection {connection.id}")

    try:
        while True:
            # События одного соединения обрабатываются строго по порядку
            data = await websocket.receive_text()
            try:
                message = json.loads(data)
            except json.JSONDecodeError:
                await connection.send("error", {"message": "Malformed JSON"})
                continue

            await gateway.handle_message(connection, message)

    except WebSocketDisconnect:
        logger.info(f"WebSocket disconnected, connection {connection.id}")

    except Exception as e:
        logger.error(f"WebSocket error on connection {connection.id}: {e}")

    finally:
        await gateway.disconnect(connection)
