"""Line-addressed editing tools — insert, edit, delete.

Line ids are 1-based. Tools report success as text; the agent loop
re-reads the document to confirm that a change really happened.
"""

from __future__ import annotations

from langchain_core.tools import tool
from loguru import logger

from docbot.agent.errors import DocumentNotFoundError
from docbot.agent.tools.document import split_lines
from docbot.memory.store import DocumentStore


def make_editing_tools(store: DocumentStore) -> list:
    """Create mutating tools closed over the store."""

    @tool
    def insert(document_id: str, user_id: str, id: int, content: str) -> str:
        """Insert multi-line markdown strictly AFTER the line with the given 1-based id. Out-of-range ids (including 0) append at the end."""
        try:
            lines = split_lines(store.read_content(document_id, user_id))
        except DocumentNotFoundError as e:
            return f"Error: {e}"

        new_lines = content.split("\n")
        if not content:
            return "Warning: content is empty, nothing inserted"
        if id < 0:
            # 0-based ids from the model
            id += 1

        heading = next((ln.strip() for ln in new_lines if ln.strip()), "")
        if heading.startswith("#") and any(ln.strip() == heading for ln in lines):
            logger.info(f"insert: heading {heading!r} already present, skipped")
            return (
                f"insert: skipped, heading '{heading}' already exists in the document; "
                "use edit to change the existing section"
            )

        if id <= 0 or id > len(lines):
            lines.extend(new_lines)
            where = "at the end of the document"
        else:
            lines[id:id] = new_lines
            where = f"after line {id}"

        store.write_content(document_id, user_id, "\n".join(lines))
        return f"insert: inserted {len(new_lines)} line(s) {where}"

    @tool
    def edit(document_id: str, user_id: str, id: int, content: str) -> str:
        """Overwrite lines starting at the 1-based id with the given multi-line text; extends the document past its end."""
        if id <= 0:
            return "Error: id must be >= 1 for edit"
        try:
            lines = split_lines(store.read_content(document_id, user_id))
        except DocumentNotFoundError as e:
            return f"Error: {e}"
        if not lines:
            return "Error: document is empty, nothing to edit"
        if id > len(lines):
            return f"Error: id={id} is out of range (document has {len(lines)} lines)"

        new_lines = content.split("\n")
        start = id - 1
        for offset, text in enumerate(new_lines):
            target = start + offset
            if target < len(lines):
                lines[target] = text
            else:
                lines.append(text)

        store.write_content(document_id, user_id, "\n".join(lines))
        return f"edit: replaced {len(new_lines)} line(s) starting at line {id}"

    @tool
    def delete(
        document_id: str, user_id: str, id: int, id_end: int | None = None
    ) -> str:
        """Delete the line with the given 1-based id, or the inclusive range [id, id_end]."""
        if id <= 0:
            return "Error: id must be >= 1 for delete"
        end = id if id_end is None else id_end
        if end <= 0:
            return "Error: id_end must be >= 1 for delete"
        if end < id:
            id, end = end, id
        try:
            lines = split_lines(store.read_content(document_id, user_id))
        except DocumentNotFoundError as e:
            return f"Error: {e}"
        if not lines:
            return "Error: document is empty, nothing to delete"
        if id > len(lines):
            return f"Error: id={id} is out of range (document has {len(lines)} lines)"

        end = min(end, len(lines))
        del lines[id - 1:end]
        store.write_content(document_id, user_id, "\n".join(lines))
        return f"delete: removed {end - id + 1} line(s) ({id}-{end})"

    return [insert, edit, delete]
