import re
from dataclasses import dataclass
from enum import Enum
from typing import List, Tuple, Union

# Request format (one line per connection, whitespace-delimited):
# <length> <COMMAND> <host> <port> <username>
# length   = 4-digit zero-padded prefix, accepted but never checked
# COMMAND  = REG | UNREG (case-sensitive)
# port     = base-10 integer, range not enforced
REQUEST_TOKENS = 5
CMD_REG = "REG"
CMD_UNREG = "UNREG"

_PORT_RE = re.compile(r"[+-]?[0-9]+")

# Token separators: ASCII whitespace only
ASCII_WHITESPACE = " \t\n\r\f\v"
_SEPARATOR_RE = re.compile(r"[ \t\n\r\f\v]+")

# Fixed replies
RESP_REG_EMPTY = "0010 REGOK"
RESP_REG_EXISTS = "0015 REGOK 9999"
RESP_UNREG_OK = "0012 UNROK 0"
RESP_UNREG_MISSING = "0015 UNROK 9999"
RESP_ERROR = "0010 ERROR"

# len("0000 REGOK ") - the prefix counts the whole reply
REGOK_OVERHEAD = 11


@dataclass(frozen=True)
class Invalid:
    pass


@dataclass(frozen=True)
class Register:
    host: str
    port: int
    username: str


@dataclass(frozen=True)
class Unregister:
    username: str


Request = Union[Invalid, Register, Unregister]

INVALID = Invalid()


class Outcome(Enum):
    REGISTERED = "REGISTERED"
    UNREGISTERED = "UNREGISTERED"
    ALREADY_EXISTS = "ALREADY_EXISTS"
    NOT_FOUND = "NOT_FOUND"
    INVALID = "INVALID"


def parse_request(line: str) -> Request:
    """
    Parses one request line into a Register, Unregister or Invalid request.
    Never raises: anything that does not have the 5-token shape, a known
    command and a numeric port is Invalid.
    """
    # Leading/trailing separators are dropped, so "...alice\n" is accepted
    line = line.strip(ASCII_WHITESPACE) if line else ""
    if not line:
        return INVALID

    parts = _SEPARATOR_RE.split(line)
    if len(parts) != REQUEST_TOKENS:
        return INVALID

    _length, command, host, port_token, username = parts

    # Assume host address is valid
    if not _PORT_RE.fullmatch(port_token):
        return INVALID
    port = int(port_token)

    if command == CMD_REG:
        return Register(host=host, port=port, username=username)
    if command == CMD_UNREG:
        return Unregister(username=username)
    return INVALID


def format_peer_list(peers: List[Tuple[str, object]]) -> str:
    return " ".join(f"{peer.host} {peer.port} {username}" for username, peer in peers)


def compose_response(outcome: Outcome, snapshot: List[Tuple[str, object]]) -> str:
    """
    Builds the wire reply for an outcome.

    snapshot is the ordered (username, Peer) list taken right after the
    transition. For REGISTERED the caller is the last entry and is left out
    of the peer list.
    """
    if outcome is Outcome.REGISTERED:
        peer_list = format_peer_list(snapshot[:-1])  # Exclude self
        if not peer_list:
            return RESP_REG_EMPTY
        return f"{len(peer_list) + REGOK_OVERHEAD:04d} REGOK {peer_list}"
    if outcome is Outcome.ALREADY_EXISTS:
        return RESP_REG_EXISTS
    if outcome is Outcome.UNREGISTERED:
        return RESP_UNREG_OK
    if outcome is Outcome.NOT_FOUND:
        return RESP_UNREG_MISSING
    return RESP_ERROR


def format_request(command: str, host: str, port: int, username: str) -> str:
    """
    Builds a request line with its length prefix filled in.
    """
    body = f"{command} {host} {port} {username}"
    return f"{len(body) + 5:04d} {body}"
