import time
from typing import Dict, List, Any, Tuple

class StatsManager:
    _instance = None

    def __new__(cls):
        if cls._instance is None:
            cls._instance = super(StatsManager, cls).__new__(cls)
            cls._instance._init()
        return cls._instance

    def _init(self):
        self.start_time = time.time()

        self.connections = 0
        self.bytes_received = 0
        self.bytes_sent = 0

        # outcome name -> count
        self.outcomes: Dict[str, int] = {}

        # (username, host, port) in registry order
        self.registered_peers: List[Tuple[str, str, int]] = []

        self.last_request = ""
        self.last_response = ""

    def reset(self):
        self._init()

    def add_connection(self):
        self.connections += 1

    def add_received(self, num_bytes: int):
        self.bytes_received += num_bytes

    def add_sent(self, num_bytes: int):
        self.bytes_sent += num_bytes

    def record_exchange(self, request: str, outcome: str, response: str):
        self.outcomes[outcome] = self.outcomes.get(outcome, 0) + 1
        self.last_request = request
        self.last_response = response

    def update_peers(self, snapshot: List[tuple]):
        """
        snapshot: ordered list of (username, Peer) from the registry.
        """
        self.registered_peers = [(username, peer.host, peer.port) for username, peer in snapshot]

    def get_peers(self) -> List[Dict[str, Any]]:
        return [
            {"username": username, "host": host, "port": port}
            for username, host, port in self.registered_peers
        ]

    def get_stats(self) -> Dict[str, Any]:
        now = time.time()
        return {
            "uptime": int(now - self.start_time),
            "connections": self.connections,
            "bytes_received": self.bytes_received,
            "bytes_sent": self.bytes_sent,
            "outcomes": dict(self.outcomes),
            "peer_count": len(self.registered_peers),
            "peers": [f"{host}:{port} ({username})" for username, host, port in self.registered_peers],
            "last_request": self.last_request,
            "last_response": self.last_response,
        }
