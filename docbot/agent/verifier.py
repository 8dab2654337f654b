"""MutationVerifier — confirm claimed edits by re-reading the document."""

from __future__ import annotations

from dataclasses import dataclass
from typing import Iterable

from loguru import logger

from docbot.agent.errors import VerificationReadError
from docbot.memory.store import DocumentStore


@dataclass
class VerificationResult:
    confirmed: bool
    snapshot: str
    change_count: int
    stop_requested: bool = False
    warning: str = ""


class MutationVerifier:
    """Compares document content after a mutating tool with the last snapshot.

    Only a real content diff counts as a change; a tool reporting success is
    not enough. Read failures are reported as unconfirmed with a warning.
    """

    def __init__(
        self,
        store: DocumentStore,
        mutating_tools: Iterable[str],
        change_stop_threshold: int | None = 3,
    ):
        self.store = store
        self.mutating_tools = frozenset(mutating_tools)
        self.change_stop_threshold = change_stop_threshold

    def is_mutating(self, tool_name: str) -> bool:
        return tool_name in self.mutating_tools

    def read_snapshot(self, document_id: str, user_id: str) -> str:
        try:
            return self.store.read_content(document_id, user_id)
        except Exception as e:
            raise VerificationReadError(f"could not read document {document_id}: {e}") from e

    def verify_change(
        self,
        document_id: str,
        user_id: str,
        prior_snapshot: str,
        tool_name: str,
        change_count: int,
    ) -> VerificationResult:
        try:
            current = self.read_snapshot(document_id, user_id)
        except VerificationReadError as e:
            logger.warning(f"Verification read failed after {tool_name}: {e}")
            return VerificationResult(
                confirmed=False,
                snapshot=prior_snapshot,
                change_count=change_count,
                warning=(
                    f"\n\n[WARNING] Could not verify the result of '{tool_name}': {e}. "
                    "Treat the change as not applied."
                ),
            )

        if current == prior_snapshot:
            logger.warning(f"{tool_name} reported a result but the document is unchanged")
            return VerificationResult(
                confirmed=False,
                snapshot=prior_snapshot,
                change_count=change_count,
                warning=(
                    f"\n\n[WARNING] The document did not change after '{tool_name}'. "
                    "The edit was not applied; re-read the document and retry with "
                    "correct line numbers."
                ),
            )

        change_count += 1
        stop = (
            self.change_stop_threshold is not None
            and change_count >= self.change_stop_threshold
        )
        logger.info(f"Confirmed document change #{change_count} by {tool_name}")
        return VerificationResult(
            confirmed=True,
            snapshot=current,
            change_count=change_count,
            stop_requested=stop,
        )
