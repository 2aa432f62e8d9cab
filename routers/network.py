import ipaddress
import socket
from typing import Optional

from fastapi import APIRouter, Request

from constants import PORT
from logging_config import get_logger
from schemas.rooms import ServerConfigResponse

logger = get_logger(__name__)

network_router = APIRouter(tags=["network"])


def private_ipv4(host: str) -> Optional[str]:
    """The bare IPv4 address in a Host header value if it is a LAN address."""
    candidate = host.split(":", 1)[0]
    try:
        address = ipaddress.IPv4Address(candidate)
    except ValueError:
        return None
    if address.is_private and not address.is_loopback:
        return candidate
    return None


def detect_lan_address() -> str:
    """Best guess at this machine's LAN address, or ``localhost``."""
    udp = socket.socket(socket.AF_INET, socket.SOCK_DGRAM)
    try:
        # No packet is sent; connect() just picks the outbound interface
        udp.connect(("10.255.255.255", 1))
        address = udp.getsockname()[0]
    except OSError as e:
        logger.debug(f"Could not detect LAN address: {e}")
        return "localhost"
    finally:
        udp.close()
    return address if not address.startswith("127.") else "localhost"


@network_router.get("/api-config", response_model=ServerConfigResponse)
async def api_config(request: Request):
    """Where clients on the LAN should point their API and socket connections."""
    host = private_ipv4(request.headers.get("host", "")) or detect_lan_address()
    return ServerConfigResponse(host=host, port=PORT, protocol=request.url.scheme)
