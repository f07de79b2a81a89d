from __future__ import annotations
"""Paginated list responses with ETag revalidation for admin listings."""
from typing import Any, Iterable, Optional, Tuple
from datetime import datetime, timezone
import hashlib
import json
from flask import request, abort, make_response

DEFAULT_LIMIT = 50
MAX_LIMIT = 200


def normalize_pagination(limit_raw, offset_raw) -> Tuple[int, int]:
    try:
        limit = int(limit_raw) if limit_raw is not None else DEFAULT_LIMIT
        offset = int(offset_raw) if offset_raw is not None else 0
    except ValueError:
        raise ValueError('limit/offset must be int')
    return max(1, min(limit, MAX_LIMIT)), max(0, offset)


def apply_pagination(q):
    """Return (paged_query, total, limit, offset) using ?limit= & ?offset=; 400 on junk."""
    try:
        limit, offset = normalize_pagination(request.args.get('limit'), request.args.get('offset'))
    except ValueError as e:
        abort(400, description=str(e))
    total = q.count()
    return q.offset(offset).limit(limit), total, limit, offset


def _iso(ts: Any) -> str:
    if isinstance(ts, datetime):
        if ts.tzinfo is None:
            ts = ts.replace(tzinfo=timezone.utc)
        return ts.replace(microsecond=0).isoformat().replace('+00:00', 'Z')
    return str(ts or '')


def compute_etag(ids: Iterable[Any], total: int, limit: int, offset: int, latest_ts: Any = None, content: str = '') -> str:
    seed = f"{list(ids)}|{total}|{limit}|{offset}|{_iso(latest_ts)}|{content}"
    return hashlib.sha256(seed.encode()).hexdigest()[:32]


def list_response(rows: list, total: int, limit: int, offset: int, latest_ts: Optional[datetime] = None):
    """Build the list payload; answer 304 when If-None-Match carries the same ETag."""
    # Rows are hashed too; updated_at has one-second resolution on SQLite
    content = json.dumps(rows, sort_keys=True, default=str)
    etag = compute_etag([r.get('id') for r in rows], total, limit, offset, latest_ts, content)
    inm = request.headers.get('If-None-Match')
    if inm and inm.strip('"') == etag:
        resp = make_response('', 304)
    else:
        resp = make_response({
            'data': rows,
            'pagination': {'total': total, 'limit': limit, 'offset': offset, 'returned': len(rows)},
        })
    resp.headers['ETag'] = etag
    return resp


__all__ = ['normalize_pagination', 'apply_pagination', 'compute_etag', 'list_response']
