from dataclasses import dataclass


@dataclass(frozen=True)
class Session:
    participant_a: str
    participant_b: str

    def __contains__(self, connection_id: str) -> bool:
        return connection_id in (self.participant_a, self.participant_b)

    def partner_of(self, connection_id: str) -> str:
        if connection_id == self.participant_a:
            return self.participant_b
        if connection_id == self.participant_b:
            return self.participant_a
        raise KeyError(connection_id)


class SessionRegistry:
    """Active chat sessions, indexed by both participants"""

    def __init__(self):
        self._by_connection: dict[str, Session] = {}

    def __len__(self) -> int:
        return len(set(self._by_connection.values()))

    def create(self, participant_a: str, participant_b: str) -> Session:
        # A connection is in at most one session
        self.terminate(participant_a)
        self.terminate(participant_b)

        session = Session(participant_a, participant_b)
        self._by_connection[participant_a] = session
        self._by_connection[participant_b] = session
        return session

    def lookup(self, connection_id: str) -> Session | None:
        return self._by_connection.get(connection_id)

    def terminate(self, connection_id: str) -> Session | None:
        """Remove the session of ``connection_id`` for both participants.

        Returns the removed session, or None when there was none.
        """
        session = self._by_connection.pop(connection_id, None)
        if session is None:
            return None
        self._by_connection.pop(session.partner_of(connection_id), None)
        return session
