"""AnkiConnect client implementing the RemoteStore port."""

import logging
from collections import defaultdict
from typing import Any, Iterable, Sequence

import requests

from ..core.model import NoteId, NoteRecord, NoteToEdit
from ..core.ports import RemoteStore

logger = logging.getLogger(__name__)

API_VERSION = 6
DEFAULT_URL = "http://127.0.0.1:8765"


class AnkiConnectError(RuntimeError):
    """AnkiConnect answered with an error (or with something unexpected)."""


def request(action: str, **params: Any) -> dict[str, Any]:
    """One AnkiConnect action, usable on its own or inside "multi"."""
    return {"action": action, "version": API_VERSION, "params": params}


def note_payload(record: NoteRecord, default_deck: str) -> dict[str, Any]:
    return {
        "deckName": record.deck or default_deck,
        "modelName": record.note_type,
        "fields": dict(record.fields),
        "tags": list(record.tags),
        "options": {"allowDuplicate": False, "duplicateScope": "deck"},
    }


class AnkiConnect(RemoteStore):
    """
    Client for the AnkiConnect add-on.

    Every call is a POST of {"action", "version", "params"}; the reply carries
    "result" and "error". Batches go through the "multi" action.
    """

    def __init__(self, url: str = DEFAULT_URL, timeout: float = 30.0):
        self.url = url
        self.timeout = timeout

    def invoke(self, action: str, **params: Any) -> Any:
        """
        Run one action and return its result.

        Raises:
            AnkiConnectError: If the reply reports an error
            requests.RequestException: If Anki cannot be reached
        """
        logger.debug("AnkiConnect %s", action)
        response = requests.post(
            self.url, json=request(action, **params), timeout=self.timeout
        )
        response.raise_for_status()
        data = response.json()
        if not isinstance(data, dict) or "error" not in data or "result" not in data:
            raise AnkiConnectError(f"unexpected response to {action}: {data!r}")
        if data["error"] is not None:
            raise AnkiConnectError(str(data["error"]))
        return data["result"]

    def multi(self, actions: Sequence[dict[str, Any]]) -> list[Any]:
        if not actions:
            return []
        results = self.invoke("multi", actions=list(actions))
        out = []
        for result in results:
            if isinstance(result, dict) and set(result) == {"result", "error"}:
                if result["error"] is not None:
                    raise AnkiConnectError(str(result["error"]))
                out.append(result["result"])
            else:
                out.append(result)
        return out

    # RemoteStore
    def known_identifiers(self) -> set[NoteId]:
        return set(self.invoke("findNotes", query="deck:*"))

    def note_types(self) -> dict[str, list[str]]:
        names = self.invoke("modelNames")
        fields = self.multi([request("modelFieldNames", modelName=n) for n in names])
        return dict(zip(names, fields))

    def ensure_decks(self, decks: Iterable[str]) -> None:
        self.multi([request("createDeck", deck=d) for d in sorted(set(decks))])

    def add_notes(
        self, records: Sequence[NoteRecord], default_deck: str
    ) -> list[NoteId | None]:
        if not records:
            return []
        notes = [note_payload(r, default_deck) for r in records]
        return list(self.invoke("addNotes", notes=notes))

    def update_notes(self, edits: Sequence[NoteToEdit], default_deck: str) -> None:
        """Replace fields and tags, then move the note's cards to its deck."""
        if not edits:
            return
        actions = []
        for item in edits:
            actions.append(
                request(
                    "updateNoteFields",
                    note={"id": item.identifier, "fields": dict(item.record.fields)},
                )
            )
            actions.append(
                request("updateNoteTags", note=item.identifier, tags=list(item.record.tags))
            )
        actions.append(request("notesInfo", notes=[e.identifier for e in edits]))
        results = self.multi(actions)

        cards_by_deck: dict[str, list[int]] = defaultdict(list)
        for item, info in zip(edits, results[-1]):
            cards_by_deck[item.record.deck or default_deck].extend(info.get("cards", []))
        self.multi(
            [
                request("changeDeck", cards=cards, deck=deck)
                for deck, cards in cards_by_deck.items()
                if cards
            ]
        )

    def delete_notes(self, ids: Sequence[NoteId]) -> None:
        if ids:
            self.invoke("deleteNotes", notes=list(ids))
