import asyncio
import argparse
import logging
from typing import Optional

from rendezvous_server import RendezvousServer
from dashboard import start_dashboard

HOST = "0.0.0.0"
DEFAULT_PORT = 5000
MIN_PORT = 1024
MAX_PORT = 65535

logger = logging.getLogger("Main")

def setup_logging():
    logging.basicConfig(
        level=logging.INFO,
        format='%(asctime)s - %(name)s - %(levelname)s - %(message)s',
        handlers=[
            logging.StreamHandler(),
            logging.FileHandler("rendezvous_server.log", mode='w')
        ]
    )

def resolve_port(value: Optional[str]) -> int:
    """
    Listen port from the command line; anything missing, non-numeric or
    outside MIN_PORT..MAX_PORT falls back to DEFAULT_PORT.
    """
    if value is None:
        return DEFAULT_PORT
    try:
        port = int(value)
    except ValueError:
        logger.warning(f"Invalid port {value!r}, using {DEFAULT_PORT}")
        return DEFAULT_PORT
    if not MIN_PORT <= port <= MAX_PORT:
        logger.warning(f"Port {port} out of range {MIN_PORT}-{MAX_PORT}, using {DEFAULT_PORT}")
        return DEFAULT_PORT
    return port

def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(description="P2P Rendezvous Server")
    parser.add_argument('port', nargs='?', default=None,
                        help=f"TCP port to listen on ({MIN_PORT}-{MAX_PORT}, default {DEFAULT_PORT})")
    parser.add_argument('--dashboard', type=int, metavar='PORT',
                        help="Serve the HTTP status page on this port")
    return parser

async def start_services(port: int, dashboard_port: Optional[int] = None, host: str = HOST):
    """
    Starts the rendezvous server and, when a port is given (0 included),
    the status page. Returns (server, dashboard runner or None).
    """
    server = RendezvousServer(host, port)
    await server.start()

    dashboard = None
    if dashboard_port is not None:
        dashboard = await start_dashboard(dashboard_port, host=host)
    return server, dashboard

async def main(argv=None):
    args = build_parser().parse_args(argv)
    port = resolve_port(args.port)

    server, dashboard = await start_services(port, args.dashboard)

    try:
        await server.serve_forever()
    except asyncio.CancelledError:
        pass
    finally:
        if dashboard is not None:
            await dashboard.cleanup()
        await server.stop()

def run():
    setup_logging()
    try:
        asyncio.run(main())
    except KeyboardInterrupt:
        pass

if __name__ == "__main__":
    run()
