"""CSV export of a history view (plaintext: passwords are never included)."""

from __future__ import annotations

import csv
import io
import os
from datetime import date, timezone, tzinfo
from pathlib import Path
from typing import Iterable, Optional

from .models import CredentialRecord

CSV_HEADER = ("Username", "Group", "Remark", "Created At")
TIMESTAMP_FORMAT = "%Y-%m-%d %H:%M:%S"


def format_timestamp(record: CredentialRecord, tz: Optional[tzinfo] = None) -> str:
    created = record.created_at
    if created.tzinfo is None:
        created = created.replace(tzinfo=timezone.utc)
    return created.astimezone(tz).strftime(TIMESTAMP_FORMAT)


def export_filename(today: Optional[date] = None) -> str:
    today = today or date.today()
    return f"securegen_export_{today.isoformat()}.csv"


def to_csv(records: Iterable[CredentialRecord], tz: Optional[tzinfo] = None) -> str:
    """Serialise *records* in the given order, header row first.

    Fields holding a comma, quote or line break are quoted with embedded
    quotes doubled; everything else is written bare.
    """
    buf = io.StringIO()
    writer = csv.writer(buf, quoting=csv.QUOTE_MINIMAL, lineterminator="\n")
    writer.writerow(CSV_HEADER)
    for r in records:
        writer.writerow([r.username, r.group or "", r.remark or "", format_timestamp(r, tz)])
    return buf.getvalue()


def write_csv(
    records: Iterable[CredentialRecord],
    output: Path,
    tz: Optional[tzinfo] = None,
) -> Path:
    """Write the CSV to *output* with owner-only permissions."""
    output.parent.mkdir(parents=True, exist_ok=True)
    output.write_text(to_csv(records, tz), encoding="utf-8", newline="")
    os.chmod(output, 0o600)
    return output
