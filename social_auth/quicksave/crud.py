from __future__ import annotations

import json
import math
from typing import Any, Dict, List, Optional

from social_auth.db import insert_returning_id
from social_auth.util.time import utcnow_iso


SORT_COLUMNS = {
    "createdAt": "created_at",
    "updatedAt": "updated_at",
}
SORT_ORDERS = ("asc", "desc")


def _search_field(content: Dict[str, Any], key: str) -> Optional[str]:
    v = content.get(key)
    if v is None:
        return None
    # Folded here rather than in SQL: SQLite's LOWER() only knows ASCII.
    return (v if isinstance(v, str) else json.dumps(v, ensure_ascii=False)).casefold()


def _like_pattern(term: str) -> str:
    # Escape LIKE wildcards so the search is a plain substring match.
    t = term.casefold().replace("\\", "\\\\").replace("%", "\\%").replace("_", "\\_")
    return f"%{t}%"


def quick_save_to_dict(row: Any) -> Dict[str, Any]:
    return {
        "id": int(row["quick_save_id"]),
        "userId": int(row["user_id"]),
        "content": json.loads(row["content_json"]),
        "createdAt": row["created_at"],
        "updatedAt": row["updated_at"],
    }


def get_quick_save(conn: Any, quick_save_id: int) -> Optional[Any]:
    return conn.execute(
        "SELECT * FROM quick_saves WHERE quick_save_id=?",
        (int(quick_save_id),),
    ).fetchone()


def add_quick_save(conn: Any, *, user_id: int, content: Dict[str, Any]) -> Dict[str, Any]:
    if not isinstance(content, dict):
        raise ValueError("content_not_object")
    now = utcnow_iso()
    qid = insert_returning_id(
        conn,
        """
        INSERT INTO quick_saves (user_id, content_json, search_title, search_description, created_at, updated_at)
        VALUES (?,?,?,?,?,?)
        """,
        (
            int(user_id),
            json.dumps(content),
            _search_field(content, "title"),
            _search_field(content, "description"),
            now,
            now,
        ),
        id_column="quick_save_id",
    )
    row = get_quick_save(conn, qid)
    assert row is not None
    return quick_save_to_dict(row)


def list_quick_saves(
    conn: Any,
    *,
    user_id: int,
    page: int = 1,
    limit: int = 10,
    search: str | None = None,
    sort_by: str = "createdAt",
    sort_order: str = "desc",
) -> Dict[str, Any]:
    """One page of a user's quick saves plus pagination metadata.

    `search` is a case-insensitive substring match on content.title or content.description.
    """
    if sort_by not in SORT_COLUMNS:
        raise ValueError("invalid_sort_by")
    if sort_order not in SORT_ORDERS:
        raise ValueError("invalid_sort_order")
    page = max(1, int(page))
    limit = max(1, int(limit))

    where = "WHERE user_id=?"
    params: List[Any] = [int(user_id)]
    term = (search or "").strip()
    if term:
        where += " AND (search_title LIKE ? ESCAPE '\\' OR search_description LIKE ? ESCAPE '\\')"
        pat = _like_pattern(term)
        params.extend([pat, pat])

    total = int(conn.execute(f"SELECT COUNT(*) AS n FROM quick_saves {where}", tuple(params)).fetchone()["n"])

    col = SORT_COLUMNS[sort_by]
    direction = "ASC" if sort_order == "asc" else "DESC"
    rows = conn.execute(
        f"""
        SELECT * FROM quick_saves {where}
        ORDER BY {col} {direction}, quick_save_id {direction}
        LIMIT ? OFFSET ?
        """,
        tuple(params + [limit, (page - 1) * limit]),
    ).fetchall()

    total_pages = math.ceil(total / limit) if total else 0
    has_next = page < total_pages
    has_prev = page > 1
    return {
        "docs": [quick_save_to_dict(r) for r in rows],
        "totalDocs": total,
        "limit": limit,
        "page": page,
        "totalPages": total_pages,
        "hasNextPage": has_next,
        "hasPrevPage": has_prev,
        "nextPage": page + 1 if has_next else None,
        "prevPage": page - 1 if has_prev else None,
    }


def delete_quick_save(conn: Any, *, user_id: int, quick_save_id: int) -> bool:
    """Delete a quick save owned by `user_id`. False when missing or owned by someone else."""
    cur = conn.execute(
        "DELETE FROM quick_saves WHERE quick_save_id=? AND user_id=?",
        (int(quick_save_id), int(user_id)),
    )
    return int(cur.rowcount or 0) > 0
