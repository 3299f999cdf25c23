import logging
from typing import Optional

from protocol import Outcome, compose_response, parse_request
from transport import TCPTransport
from peer_registry import PeerRegistry
from stats_manager import StatsManager

logger = logging.getLogger(__name__)

# Answered normally, logged as warnings
REJECTIONS = (Outcome.ALREADY_EXISTS, Outcome.NOT_FOUND)

class RendezvousServer:
    def __init__(self, host: str, port: int, registry: Optional[PeerRegistry] = None):
        self.host = host
        self.port = port
        self.registry = registry if registry is not None else PeerRegistry()
        self.transport = TCPTransport(on_request=self.handle_request)

    async def start(self):
        await self.transport.start_server(self.host, self.port)
        # Port 0 means the OS picked one
        self.port = self.transport.port
        logger.info(f"RendezvousServer started on {self.host}:{self.port}")

    async def serve_forever(self):
        await self.transport.serve_forever()

    async def stop(self):
        await self.transport.close()
        logger.info(f"RendezvousServer on {self.host}:{self.port} stopped")

    def handle_request(self, text: str, addr: tuple) -> str:
        """
        Callback from TCPTransport: parse -> apply -> compose for one request line.
        """
        logger.info(f"Request from {addr}: {text.strip()!r}")

        request = parse_request(text)
        logger.debug(f"Parsed request: {request}")

        outcome, snapshot = self.registry.transition(request)
        response = compose_response(outcome, snapshot)

        table = ",".join(f"{peer.host}:{peer.port}" for _, peer in snapshot)
        if outcome in REJECTIONS:
            logger.warning(f"{outcome.value} for {request} [{table}]")
        else:
            logger.info(f"{outcome.value} [{table}]")
        logger.info(f"Reply to {addr}: {response}")

        stats = StatsManager()
        stats.record_exchange(text.strip(), outcome.value, response)
        stats.update_peers(snapshot)
        return response
