import asyncio
import argparse
import logging
from typing import List, Tuple

from protocol import CMD_REG, CMD_UNREG, format_request

logger = logging.getLogger(__name__)

BUFFER_SIZE = 4096
REG_EXISTS_CODE = "9999"

async def send_request(server_host: str, server_port: int, line: str) -> str:
    """
    Sends one request line and returns the server's reply.
    Raises ConnectionError if the server closes without replying.
    """
    reader, writer = await asyncio.open_connection(server_host, server_port)
    try:
        writer.write(line.encode('ascii'))
        await writer.drain()
        # The server handles half-closed connections
        if writer.can_write_eof():
            writer.write_eof()

        chunks = []
        while True:
            data = await reader.read(BUFFER_SIZE)
            if not data:
                break
            chunks.append(data)
    finally:
        writer.close()
        await writer.wait_closed()

    if not chunks:
        raise ConnectionError(f"{server_host}:{server_port} closed without a reply")
    reply = b"".join(chunks).decode('ascii')
    logger.debug(f"Reply from {server_host}:{server_port}: {reply}")
    return reply

async def register(server_host: str, server_port: int, host: str, port: int, username: str) -> str:
    return await send_request(server_host, server_port, format_request(CMD_REG, host, port, username))

async def unregister(server_host: str, server_port: int, username: str, host: str = "0", port: int = 0) -> str:
    # host/port are unused by the server but keep the request shape
    return await send_request(server_host, server_port, format_request(CMD_UNREG, host, port, username))

def parse_peer_list(reply: str) -> List[Tuple[str, int, str]]:
    """
    Extracts (host, port, username) triples from a REGOK reply.
    The "already registered" sentinel (REGOK 9999) gives an empty list.
    Raises ValueError for anything else that is not a list of triples.
    """
    parts = reply.split()
    if len(parts) < 2 or parts[1] != "REGOK":
        raise ValueError(f"Not a REGOK reply: {reply!r}")
    triples = parts[2:]
    if triples == [REG_EXISTS_CODE]:
        return []
    if len(triples) % 3 != 0:
        raise ValueError(f"Malformed peer list in reply: {reply!r}")
    return [
        (triples[i], int(triples[i + 1]), triples[i + 2])
        for i in range(0, len(triples), 3)
    ]

async def main():
    parser = argparse.ArgumentParser(description="Rendezvous Server Client")
    parser.add_argument('server_host', help="Rendezvous server host")
    parser.add_argument('server_port', type=int, help="Rendezvous server port")
    parser.add_argument('command', choices=[CMD_REG, CMD_UNREG])
    parser.add_argument('host', help="Address other peers should use to reach you")
    parser.add_argument('port', type=int)
    parser.add_argument('username')

    args = parser.parse_args()
    line = format_request(args.command, args.host, args.port, args.username)
    reply = await send_request(args.server_host, args.server_port, line)
    print(reply)

if __name__ == "__main__":
    logging.basicConfig(level=logging.INFO, format='%(asctime)s - %(name)s - %(levelname)s - %(message)s')
    try:
        asyncio.run(main())
    except KeyboardInterrupt:
        pass
