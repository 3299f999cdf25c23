import asyncio
import logging
from typing import Callable, Optional

from stats_manager import StatsManager

logger = logging.getLogger(__name__)

ENCODING = "ascii"

class TCPTransport:
    def __init__(self, on_request: Optional[Callable[[str, tuple], Optional[str]]] = None):
        """
        :param on_request: Callback function (text, addr) -> reply text or None
        """
        self.server: Optional[asyncio.AbstractServer] = None
        self.on_request = on_request

    class _Protocol(asyncio.Protocol):
        """
        One instance per connection. Only the first chunk of data is handled;
        the reply is written and our side is closed right after.
        """
        def __init__(self, outer):
            self.outer = outer
            self.transport = None
            self.addr = None
            self.handled = False

        def connection_made(self, transport):
            self.transport = transport
            self.addr = transport.get_extra_info('peername')
            StatsManager().add_connection()
            logger.info(f"Connection from {self.addr}")

        def data_received(self, data):
            if self.handled:
                logger.debug(f"Ignoring {len(data)} extra bytes from {self.addr}")
                return
            self.handled = True
            StatsManager().add_received(len(data))

            text = data.decode(ENCODING, errors='replace')
            try:
                reply = self.outer.on_request(text, self.addr) if self.outer.on_request else None
            except Exception:
                logger.exception(f"Error handling request from {self.addr}")
                self.transport.close()
                return

            if reply is None:
                self.transport.close()
                return
            self.send_reply(reply)

        def send_reply(self, reply: str):
            if self.transport.is_closing():
                logger.warning(f"Connection to {self.addr} closed before reply could be sent")
                return
            data = reply.encode(ENCODING, errors='replace')
            self.transport.write(data)
            StatsManager().add_sent(len(data))
            if self.transport.can_write_eof():
                self.transport.write_eof()
            self.transport.close()

        def eof_received(self):
            if self.handled:
                return None
            # Half-closed before sending anything: nothing more can arrive.
            logger.warning(f"{self.addr} closed its side without sending a request")
            return False

        def connection_lost(self, exc):
            if exc is not None:
                logger.error(f"Connection to {self.addr} lost: {exc}")
            else:
                logger.debug(f"Connection to {self.addr} closed")

    async def start_server(self, host: str, port: int):
        """
        Binds the TCP listening socket to the given host and port.
        """
        loop = asyncio.get_running_loop()
        self.server = await loop.create_server(
            lambda: self._Protocol(self),
            host,
            port
        )
        logger.info(f"TCP Server started on {host}:{self.port}")

    @property
    def port(self) -> Optional[int]:
        """
        The port actually bound (useful when started on port 0).
        """
        if self.server is None or not self.server.sockets:
            return None
        return self.server.sockets[0].getsockname()[1]

    async def serve_forever(self):
        await self.server.serve_forever()

    async def close(self):
        """
        Stops accepting connections.
        """
        if self.server:
            self.server.close()
            await self.server.wait_closed()
            logger.info("TCP Server closed")
