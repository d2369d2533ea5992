# reviewiq/modules/reviews/websocket/review_channel.py

from typing import Any, Dict, Set
from fastapi import WebSocket, WebSocketDisconnect
from datetime import datetime
import logging

logger = logging.getLogger(__name__)

REVIEW_FINALIZED = "review_finalized"


class ReviewChannelManager:
    """Per-branch WebSocket channels for finalized review events"""

    def __init__(self):
        # Active connections by branch
        self.active_connections: Dict[str, Set[WebSocket]] = {}
        self.connection_metadata: Dict[WebSocket, Dict[str, Any]] = {}

    async def connect(self, websocket: WebSocket, branch_id: str):
        """Accept new connection"""
        await websocket.accept()

        self.active_connections.setdefault(branch_id, set()).add(websocket)
        self.connection_metadata[websocket] = {
            "branch_id": branch_id,
            "connected_at": datetime.utcnow(),
        }

        logger.info(f"WebSocket connected for branch {branch_id}")

    def disconnect(self, websocket: WebSocket):
        """Remove connection"""
        metadata = self.connection_metadata.pop(websocket, None)
        if not metadata:
            return

        branch_id = metadata["branch_id"]
        connections = self.active_connections.get(branch_id)
        if connections is not None:
            connections.discard(websocket)
            if not connections:
                del self.active_connections[branch_id]

        logger.info(f"WebSocket disconnected for branch {branch_id}")

    def connection_count(self, branch_id: str) -> int:
        return len(self.active_connections.get(branch_id, ()))

    async def broadcast_to_branch(self, branch_id: str, message: Dict[str, Any]):
        """Send a message to every connection subscribed to a branch"""
        if branch_id not in self.active_connections:
            return

        disconnected = set()

        for websocket in list(self.active_connections[branch_id]):
            try:
                await websocket.send_json(message)
            except Exception as e:
                logger.error(f"Error broadcasting to websocket: {e}")
                disconnected.add(websocket)

        for websocket in disconnected:
            self.disconnect(websocket)

    async def broadcast_review(self, branch_id: str, review: Dict[str, Any]):
        """Publish one finalized review to its branch channel"""
        await self.broadcast_to_branch(
            branch_id,
            {
                "type": REVIEW_FINALIZED,
                "branch_id": branch_id,
                "data": review,
                "timestamp": datetime.utcnow().isoformat(),
            },
        )

    async def handle_client_message(self, websocket: WebSocket, message: Dict[str, Any]):
        """Handle incoming message from client"""
        if message.get("type") == "ping":
            await websocket.send_json(
                {"type": "pong", "timestamp": datetime.utcnow().isoformat()}
            )


async def review_websocket_endpoint(
    websocket: WebSocket,
    branch_id: str,
    manager: ReviewChannelManager,
):
    """Main WebSocket endpoint handler"""
    await manager.connect(websocket, branch_id)

    try:
        while True:
            data = await websocket.receive_json()
            await manager.handle_client_message(websocket, data)
    except WebSocketDisconnect:
        pass
    except Exception as e:
        logger.error(f"WebSocket error: {e}")
    finally:
        manager.disconnect(websocket)
