"""Roster upload: CSV parsing, list fields, avatar references."""

from __future__ import annotations

import csv
import io
import logging
from urllib.parse import quote

from pydantic import ValidationError

from velvet_rope.models import Attendee

logger = logging.getLogger(__name__)

AVATAR_BASE_URL = "https://api.dicebear.com/9.x/notionists/svg"

_INT_FIELDS = {"yearsExperience", "dealValue", "networkSize", "influenceScore"}


class RosterError(ValueError):
    """Raised when an upload contains no usable attendees."""


def split_list(value: str, sep: str = ";") -> list[str]:
    """"a; b;;c" → ["a", "b", "c"]"""
    return [part.strip() for part in value.split(sep) if part.strip()]


def avatar_url(seed: str) -> str:
    """Deterministic avatar image URL for a seed (usually the e-mail)."""
    return f"{AVATAR_BASE_URL}?seed={quote(seed)}&size=128&backgroundColor=1a1a2e"


def _to_int(raw: str | None) -> int:
    try:
        return int(float((raw or "0").strip() or "0"))
    except ValueError:
        return 0


def parse_csv(text: str, limit: int | None = None) -> list[Attendee]:
    """Parse CRM export rows into attendees.

    Headers use the camelCase column names of the export (firstName,
    yearsExperience, ...). Rows without an id get a positional one; rows
    with neither a name nor an id are skipped. Raises RosterError if no
    row survives.
    """
    reader = csv.DictReader(io.StringIO(text.lstrip("\ufeff")))
    if reader.fieldnames is None:
        raise RosterError("No valid attendees found in CSV.")
    reader.fieldnames = [h.strip() for h in reader.fieldnames]

    attendees: list[Attendee] = []
    seen: set[str] = set()
    for line_no, row in enumerate(reader, start=1):
        row = {k: (v or "").strip() for k, v in row.items() if k}
        if not any(row.values()):
            continue
        if not (row.get("id") or row.get("firstName") or row.get("lastName")):
            logger.debug("skipping CSV row %d without id or name", line_no)
            continue
        fields = {k: _to_int(v) if k in _INT_FIELDS else v for k, v in row.items()}
        fields["id"] = row.get("id") or str(line_no)
        if fields["id"] in seen:
            logger.warning("skipping duplicate attendee id %r on row %d", fields["id"], line_no)
            continue
        if fields.get("connectionStrength") not in ("cold", "warm", "hot"):
            fields["connectionStrength"] = "cold"
        try:
            attendee = Attendee.model_validate(fields)
        except ValidationError as e:
            logger.warning("skipping invalid CSV row %d: %s", line_no, e)
            continue
        seen.add(attendee.id)
        attendees.append(attendee)
        if limit is not None and len(attendees) >= limit:
            break

    if not attendees:
        raise RosterError("No valid attendees found in CSV.")
    return attendees
