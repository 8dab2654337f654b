"""Loop guards — repetition/stall detection and narration classification."""

from __future__ import annotations

import hashlib
import re
from typing import Iterable, Protocol

from loguru import logger

_IMAGE_RE = re.compile(r"!\[[^\]]*\]\(\s*([^)\s]+)[^)]*\)")


def content_hash(text: str) -> str:
    """SHA-256 hex digest of ``text``; only equality of digests matters."""
    return hashlib.sha256(text.encode("utf-8")).hexdigest()


class RepetitionDetector:
    """Counts how many consecutive observations hashed to the same value.

    ``observe`` returns True when the run length reaches ``threshold``; the
    run is then reset so every trip is reported exactly once.

    Parameters
    ----------
    threshold : int
        Run length that trips the detector.
    count_first : bool
        If True, a new value starts a run of 1 (three identical responses
        trip a threshold of 3). If False, a new value starts a run of 0, so
        only repeats count (used for the progress log, where a changed value
        means progress).
    name : str
        Label for log messages.
    """

    def __init__(self, threshold: int, count_first: bool = True, name: str = "guard"):
        self.threshold = threshold
        self.count_first = count_first
        self.name = name
        self.last_hash: str | None = None
        self.count = 0

    def seed(self, text: str) -> None:
        """Store a baseline value without counting it."""
        self.last_hash = content_hash(text)
        self.count = 0

    def observe(self, text: str) -> bool:
        digest = content_hash(text)
        if digest == self.last_hash:
            self.count += 1
        else:
            self.last_hash = digest
            self.count = 1 if self.count_first else 0

        if self.count >= self.threshold:
            logger.warning(f"{self.name}: {self.count} consecutive repeats, tripped")
            self.count = 0
            return True
        return False

    def reset(self) -> None:
        self.last_hash = None
        self.count = 0


class NarrationClassifier(Protocol):
    """Decides whether model text narrates an edit instead of performing it."""

    def is_narrating_not_acting(self, text: str) -> bool: ...


class KeywordNarrationClassifier:
    """Case-insensitive substring match against a list of markers."""

    def __init__(self, markers: Iterable[str]):
        self.markers = [m.lower() for m in markers if m]

    def is_narrating_not_acting(self, text: str) -> bool:
        lowered = (text or "").lower()
        return any(m in lowered for m in self.markers)


def has_unresolved_images(
    text: str,
    tool_outputs: Iterable[str],
    image_tools: Iterable[str],
    snapshot: str = "",
) -> bool:
    """True when the reply echoes an image that an image-bearing tool returned.

    Only progress-log entries of ``image_tools`` count as image results.
    Images already present in ``snapshot`` are placed and never count.
    """
    urls = {url for url in _IMAGE_RE.findall(text or "") if url not in snapshot}
    if not urls:
        return False
    prefixes = tuple(f"[{name}] " for name in image_tools)
    if not prefixes:
        return False
    found = {
        url
        for out in tool_outputs
        if out.startswith(prefixes)
        for url in _IMAGE_RE.findall(out)
    }
    return bool(urls & found)
