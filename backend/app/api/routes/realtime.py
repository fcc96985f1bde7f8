"""Real-time channel - WebSocket endpoint feeding ticket events"""
from fastapi import APIRouter, Depends, Query, WebSocket, WebSocketDisconnect, status

from ...domain.errors import InvalidCredentialError
from ...services.channel_registry import ChannelRegistry, get_channel_registry
from ...utils.jwt import CredentialVerifier, get_credential_verifier
from ...utils.logger import get_logger

logger = get_logger(__name__)
router = APIRouter()


@router.websocket("/ws")
async def realtime_channel(
    websocket: WebSocket,
    token: str = Query(...),
    verifier: CredentialVerifier = Depends(get_credential_verifier),
    registry: ChannelRegistry = Depends(get_channel_registry)
):
    """
    Authenticated push channel.

    Browsers cannot set headers on WebSocket upgrades, so the bearer token
    comes in the `token` query parameter. Inbound frames are ignored apart
    from keeping the connection alive.
    """
    try:
        principal = verifier.verify(token)
    except InvalidCredentialError as e:
        logger.info(f"Rejected channel: {e.message}")
        await websocket.close(code=status.WS_1008_POLICY_VIOLATION)
        return

    channel = await registry.connect(websocket, principal)
    try:
        while True:
            await websocket.receive_text()
    except WebSocketDisconnect:
        pass
    finally:
        registry.disconnect(channel)
        logger.info(
            f"Channel closed for {principal.principal_id}",
            extra={"principal_id": principal.principal_id}
        )
