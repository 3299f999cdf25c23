import asyncio
import logging
import sys
import os

import pytest

# Ensure parent directory is in path
sys.path.append(os.path.abspath(os.path.join(os.path.dirname(__file__), '..')))

from rendezvous_server import RendezvousServer
from client import send_request, register, unregister, parse_peer_list
from stats_manager import StatsManager
from peer_registry import Peer
import main

# Configure logging
logging.basicConfig(level=logging.INFO, format='%(asctime)s - %(name)s - %(message)s')

HOST = "127.0.0.1"


async def with_server(scenario):
    StatsManager().reset()
    server = RendezvousServer(HOST, 0)
    await server.start()
    try:
        return await scenario(server)
    finally:
        await server.stop()


def run(scenario):
    return asyncio.run(with_server(scenario))


def test_scenarios_a_to_e():
    async def scenario(server):
        port = server.port

        # A
        assert await send_request(HOST, port, "0016 REG 1.2.3.4 6000 alice") == "0010 REGOK"
        assert server.registry.snapshot() == [("alice", Peer("1.2.3.4", 6000))]

        # B
        assert await send_request(HOST, port, "0017 REG 5.6.7.8 7000 bob") == "0029 REGOK 1.2.3.4 6000 alice"
        assert [name for name, _ in server.registry.snapshot()] == ["alice", "bob"]

        # C
        assert await send_request(HOST, port, "0015 REG 9.9.9.9 9000 alice") == "0015 REGOK 9999"
        assert server.registry.get("alice") == Peer("1.2.3.4", 6000)
        assert len(server.registry) == 2

        # D
        assert await send_request(HOST, port, "0013 UNREG 0 0 carol") == "0015 UNROK 9999"
        assert len(server.registry) == 2

        # E
        assert await send_request(HOST, port, "garbage") == "0010 ERROR"
        assert [name for name, _ in server.registry.snapshot()] == ["alice", "bob"]

    run(scenario)


def test_unregister_then_register_again():
    async def scenario(server):
        port = server.port
        await register(HOST, port, "1.2.3.4", 6000, "alice")
        await register(HOST, port, "5.6.7.8", 7000, "bob")

        assert await unregister(HOST, port, "alice") == "0012 UNROK 0"
        assert "alice" not in server.registry

        reply = await register(HOST, port, "1.1.1.1", 6001, "alice")
        assert parse_peer_list(reply) == [("5.6.7.8", 7000, "bob")]

    run(scenario)


def test_peer_list_order_with_many_peers():
    async def scenario(server):
        port = server.port
        names = [f"peer{i}" for i in range(8)]
        for i, name in enumerate(names):
            reply = await register(HOST, port, f"10.0.0.{i}", 6000 + i, name)
            expected = [(f"10.0.0.{j}", 6000 + j, names[j]) for j in range(i)]
            assert parse_peer_list(reply) == expected
            assert int(reply[:4]) == len(reply)

    run(scenario)


def test_trailing_newline_is_accepted():
    async def scenario(server):
        assert await send_request(HOST, server.port, "0016 REG 1.2.3.4 6000 alice\n") == "0010 REGOK"

    run(scenario)


def test_concurrent_register_same_username():
    async def scenario(server):
        replies = await asyncio.gather(*[
            register(HOST, server.port, "10.0.0.1", 6000 + i, "alice") for i in range(20)
        ])
        assert replies.count("0010 REGOK") == 1
        assert replies.count("0015 REGOK 9999") == 19
        assert len(server.registry) == 1

    run(scenario)


def test_half_close_without_request_gets_no_reply():
    async def scenario(server):
        reader, writer = await asyncio.open_connection(HOST, server.port)
        writer.write_eof()
        data = await asyncio.wait_for(reader.read(), timeout=2.0)
        writer.close()
        await writer.wait_closed()
        assert data == b""
        assert len(server.registry) == 0

    run(scenario)


def test_handler_error_closes_connection_without_reply():
    async def scenario(server):
        def broken(request):
            raise RuntimeError("boom")

        server.registry.transition = broken
        with pytest.raises(ConnectionError):
            await send_request(HOST, server.port, "0016 REG 1.2.3.4 6000 alice")

    run(scenario)


def test_stats_follow_exchanges():
    async def scenario(server):
        port = server.port
        await register(HOST, port, "1.2.3.4", 6000, "alice")
        await register(HOST, port, "1.2.3.4", 6000, "alice")
        await send_request(HOST, port, "garbage")

        stats = StatsManager().get_stats()
        assert stats["connections"] == 3
        assert stats["outcomes"] == {"REGISTERED": 1, "ALREADY_EXISTS": 1, "INVALID": 1}
        assert stats["last_response"] == "0010 ERROR"
        assert stats["bytes_sent"] == len("0010 REGOK") + len("0015 REGOK 9999") + len("0010 ERROR")
        assert StatsManager().get_peers() == [{"username": "alice", "host": "1.2.3.4", "port": 6000}]

    run(scenario)


@pytest.mark.parametrize("value, expected", [
    (None, 5000),
    ("6000", 6000),
    ("1024", 1024),
    ("65535", 65535),
    ("1023", 5000),
    ("65536", 5000),
    ("http", 5000),
    ("", 5000),
])
def test_resolve_port(value, expected):
    assert main.resolve_port(value) == expected


def test_parser_accepts_port_and_dashboard():
    args = main.build_parser().parse_args(["7000", "--dashboard", "8080"])
    assert args.port == "7000"
    assert args.dashboard == 8080
    assert main.build_parser().parse_args([]).port is None


def test_parse_peer_list_sentinel_and_lists():
    assert parse_peer_list("0015 REGOK 9999") == []
    assert parse_peer_list("0010 REGOK") == []
    assert parse_peer_list("0029 REGOK 1.2.3.4 6000 alice") == [("1.2.3.4", 6000, "alice")]


@pytest.mark.parametrize("reply", [
    "0010 ERROR",
    "0015 UNROK 9999",
    "0020 REGOK 1.2.3.4 6000",
    "0030 REGOK 1.2.3.4 6000 alice 5.6.7.8",
    "0016 REGOK 9999 extra",
])
def test_parse_peer_list_rejects_malformed_replies(reply):
    with pytest.raises(ValueError):
        parse_peer_list(reply)
