"""
supabase_rest.py — HTTP-based database client using Supabase's PostgREST API.
Every table in the hosted database is reached through these helpers; callers
pass equality filters as a dict and anything richer (gte/lte/in/is) as a raw
PostgREST query string.
"""
import httpx
from urllib.parse import quote

from config import SUPABASE_URL, SUPABASE_SERVICE_ROLE_KEY

# PostgREST caps a single response at this many rows by default
MAX_ROWS = 1000


def _headers(prefer: str = "return=representation"):
    return {
        "apikey": SUPABASE_SERVICE_ROLE_KEY,
        "Authorization": f"Bearer {SUPABASE_SERVICE_ROLE_KEY}",
        "Content-Type": "application/json",
        "Prefer": prefer,
    }


def _eq_params(filters: dict | None) -> str:
    if not filters:
        return ""
    return "".join(f"&{key}=eq.{quote(str(value))}" for key, value in filters.items())


def in_filter(column: str, values) -> str:
    """Build an `in.(...)` query string fragment for `query_string`."""
    joined = ",".join(quote(str(v), safe="") for v in values)
    return f"{column}=in.({joined})"


def sb_select(
    table: str,
    filters: dict = None,
    columns: str = "*",
    query_string: str = None,
    order: str = None,
    limit: int = None,
    offset: int = None,
) -> list:
    """Select rows from a table with optional equality filters or raw query.

    `order` uses PostgREST syntax, e.g. "start_epoch_second.desc" or
    "contest_id,problem_index".
    """
    url = f"{SUPABASE_URL}/rest/v1/{table}?select={columns}"
    url += _eq_params(filters)
    if query_string:
        url += f"&{query_string}"
    if order:
        url += f"&order={order}"
    if limit is not None:
        url += f"&limit={limit}"
    if offset:
        url += f"&offset={offset}"

    with httpx.Client(timeout=10) as client:
        resp = client.get(url, headers=_headers())
        resp.raise_for_status()
        return resp.json()


def sb_select_all(table: str, columns: str = "*", order: str = "id", page_size: int = MAX_ROWS, **kwargs) -> list:
    """Page through a table until a short page comes back."""
    rows: list = []
    offset = 0
    while True:
        page = sb_select(table, columns=columns, order=order, limit=page_size, offset=offset, **kwargs)
        rows.extend(page)
        if len(page) < page_size:
            return rows
        offset += page_size


def sb_insert(table: str, data: dict) -> dict:
    """Insert a row and return the created record."""
    url = f"{SUPABASE_URL}/rest/v1/{table}"
    with httpx.Client(timeout=10) as client:
        resp = client.post(url, json=data, headers=_headers())
        resp.raise_for_status()
        result = resp.json()
        return result[0] if isinstance(result, list) and result else {}


def sb_upsert(table: str, rows, on_conflict: str, ignore_duplicates: bool = False) -> list:
    """Insert rows, resolving conflicts on `on_conflict` columns.

    With `ignore_duplicates` existing rows are left untouched, otherwise they
    are merged with the new values.
    """
    if isinstance(rows, dict):
        rows = [rows]
    if not rows:
        return []
    resolution = "ignore-duplicates" if ignore_duplicates else "merge-duplicates"
    url = f"{SUPABASE_URL}/rest/v1/{table}?on_conflict={on_conflict}"
    with httpx.Client(timeout=30) as client:
        resp = client.post(url, json=rows, headers=_headers(f"resolution={resolution},return=representation"))
        resp.raise_for_status()
        result = resp.json()
        return result if isinstance(result, list) else []


def sb_update(table: str, filters: dict, data: dict) -> dict:
    """Update rows matching every equality filter; returns the first updated row."""
    url = f"{SUPABASE_URL}/rest/v1/{table}?" + _eq_params(filters).lstrip("&")
    with httpx.Client(timeout=10) as client:
        resp = client.patch(url, json=data, headers=_headers())
        resp.raise_for_status()
        result = resp.json()
        return result[0] if isinstance(result, list) and result else {}


def sb_delete(table: str, filters: dict) -> int:
    """Delete rows matching every equality filter; returns how many went."""
    if not filters:
        raise ValueError("Refusing to delete without filters")
    url = f"{SUPABASE_URL}/rest/v1/{table}?" + _eq_params(filters).lstrip("&")
    with httpx.Client(timeout=10) as client:
        resp = client.delete(url, headers=_headers())
        resp.raise_for_status()
        result = resp.json()
        return len(result) if isinstance(result, list) else 0


def sb_count(table: str, filters: dict = None, query_string: str = None) -> int:
    """Count rows in a table with optional filters."""
    url = f"{SUPABASE_URL}/rest/v1/{table}?select=*"
    url += _eq_params(filters)
    if query_string:
        # + in timestamps must survive the query string
        url += f"&{query_string.replace('+', '%2B')}"

    headers = {**_headers(), "Prefer": "count=exact"}
    with httpx.Client(timeout=10) as client:
        # Use HEAD request to get just the count via headers
        resp = client.head(url, headers=headers)
        resp.raise_for_status()
        content_range = resp.headers.get("content-range", "0-0/0")
        try:
            return int(content_range.split("/")[-1])
        except ValueError:
            return 0
