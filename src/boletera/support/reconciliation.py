"""Per-ticket search state for the orphan reconciliation desk.

Support staff search for the right account for several orphan tickets at
once. The board keeps, for every ticket, the candidates of the latest
search and the account picked from them. Searches carry a client sequence
number; results for a sequence older than the newest one seen for that
ticket are stale and are not stored.
"""

from typing import TYPE_CHECKING, Any

if TYPE_CHECKING:
    from django.contrib.sessions.backends.base import SessionBase


class ReconciliationBoard:
    """Session-backed map of ticket id to candidates, selection, and sequence."""

    session_key = "boletera_reconciliation"

    def __init__(self, session: "SessionBase") -> None:
        self.session = session

    def _tickets(self) -> dict[str, dict[str, Any]]:
        return self.session.setdefault(self.session_key, {})

    def _entry(self, ticket_id: int) -> dict[str, Any]:
        return self._tickets().setdefault(str(ticket_id), {"seq": -1, "candidates": [], "selected": None})

    def record_search(self, ticket_id: int, seq: int | None, candidates: list[dict[str, Any]]) -> bool:
        """Store search results for a ticket unless they are stale.

        Args:
            ticket_id: The orphan ticket being reconciled.
            seq: Client sequence number of the search; ``None`` counts as
                newer than anything seen so far.
            candidates: Serialized candidate accounts.

        Returns:
            ``True`` when stored, ``False`` when the results were stale.
        """
        entry = self._entry(ticket_id)
        latest = entry["seq"]
        if seq is None:
            seq = latest + 1
        if seq < latest:
            return False
        entry["seq"] = seq
        entry["candidates"] = candidates
        candidate_ids = {candidate["id"] for candidate in candidates}
        if entry["selected"] not in candidate_ids:
            entry["selected"] = None
        self.session.modified = True
        return True

    def candidates(self, ticket_id: int) -> list[dict[str, Any]]:
        """Candidates from the latest stored search for a ticket."""
        return list(self._tickets().get(str(ticket_id), {}).get("candidates", []))

    def select(self, ticket_id: int, user_id: int) -> None:
        """Remember the account picked for a ticket."""
        self._entry(ticket_id)["selected"] = user_id
        self.session.modified = True

    def selected(self, ticket_id: int) -> int | None:
        """The account picked for a ticket, if any."""
        return self._tickets().get(str(ticket_id), {}).get("selected")

    def forget(self, ticket_id: int) -> None:
        """Drop a ticket's state, e.g. once it has been linked."""
        if self._tickets().pop(str(ticket_id), None) is not None:
            self.session.modified = True

    def snapshot(self) -> dict[str, dict[str, Any]]:
        """The whole board, keyed by ticket id."""
        return {ticket_id: dict(entry) for ticket_id, entry in self._tickets().items()}
