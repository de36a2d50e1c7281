import csv
import io
import json
from datetime import date, datetime
from typing import Any, Dict, Iterable, List, Optional, Sequence


def _cell(value: Any) -> str:
    if value is None:
        return ""
    if isinstance(value, bool):
        return "true" if value else "false"
    if isinstance(value, (datetime, date)):
        return value.isoformat()
    if isinstance(value, (list, tuple, set)):
        return "; ".join(_cell(v) for v in value)
    if isinstance(value, dict):
        return json.dumps(value, default=str, ensure_ascii=False, sort_keys=True)
    return str(value)


def collect_fieldnames(rows: Sequence[Dict[str, Any]]) -> List[str]:
    """Union of keys across all rows, in first-seen order."""
    seen = {}
    for row in rows:
        for key in row:
            seen.setdefault(key, None)
    return list(seen)


def export_to_csv(rows: Iterable[Dict[str, Any]], fieldnames: Optional[List[str]] = None) -> str:
    """
    Render records as CSV text with a header row and every field quoted.
    Missing keys become empty cells; lists are joined with "; " and dicts
    are JSON encoded.
    """
    rows = list(rows or [])
    if not rows:
        raise ValueError("No data provided to export.")

    if fieldnames is None:
        fieldnames = collect_fieldnames(rows)

    buf = io.StringIO()
    writer = csv.writer(buf, quoting=csv.QUOTE_ALL, lineterminator="\r\n")
    writer.writerow(fieldnames)
    for row in rows:
        writer.writerow([_cell(row.get(name)) for name in fieldnames])
    return buf.getvalue()


def export_filename(collection: str, when: Optional[datetime] = None) -> str:
    when = when or datetime.utcnow()
    return f"{collection}_{when.strftime('%Y%m%d_%H%M%S')}.csv"
