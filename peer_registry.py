import threading
from collections import OrderedDict
from dataclasses import dataclass
from typing import List, Optional, Tuple

from protocol import Outcome, Register, Request, Unregister


@dataclass(frozen=True)
class Peer:
    host: str
    port: int

    def __repr__(self):
        return f"<Peer {self.host}:{self.port}>"


class PeerRegistry:
    """
    Ordered table of username -> Peer shared by every connection.

    New entries are always appended at the tail, so the most recently
    registered peer is the last one in snapshot().
    """

    def __init__(self):
        self._peers: "OrderedDict[str, Peer]" = OrderedDict()
        self._lock = threading.Lock()

    def apply(self, request: Request) -> Outcome:
        outcome, _ = self.transition(request)
        return outcome

    def transition(self, request: Request) -> Tuple[Outcome, List[Tuple[str, Peer]]]:
        """
        Applies the request and returns the outcome together with the
        registry snapshot taken in the same critical section.
        """
        with self._lock:
            outcome = self._apply_locked(request)
            return outcome, list(self._peers.items())

    def _apply_locked(self, request: Request) -> Outcome:
        if isinstance(request, Register):
            if request.username in self._peers:
                return Outcome.ALREADY_EXISTS
            self._peers[request.username] = Peer(request.host, request.port)
            return Outcome.REGISTERED

        if isinstance(request, Unregister):
            if request.username not in self._peers:
                return Outcome.NOT_FOUND
            del self._peers[request.username]
            return Outcome.UNREGISTERED

        return Outcome.INVALID

    def snapshot(self) -> List[Tuple[str, Peer]]:
        with self._lock:
            return list(self._peers.items())

    def get(self, username: str) -> Optional[Peer]:
        with self._lock:
            return self._peers.get(username)

    def __contains__(self, username: str) -> bool:
        with self._lock:
            return username in self._peers

    def __len__(self) -> int:
        with self._lock:
            return len(self._peers)
