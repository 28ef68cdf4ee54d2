from __future__ import annotations

import json
from datetime import date, datetime
from typing import Any

# Firestore hands back datetimes (DatetimeWithNanoseconds); tag them so they
# come back as datetimes instead of strings.
_DT_TAG = "__datetime__"


def _encode(o: Any) -> Any:
    if isinstance(o, datetime):
        return {_DT_TAG: o.isoformat()}
    if isinstance(o, date):
        return o.isoformat()
    if isinstance(o, (set, frozenset, tuple)):
        return list(o)
    raise TypeError(f"Object of type {type(o).__name__} is not JSON serializable")


def _decode(d: dict) -> Any:
    if len(d) == 1 and _DT_TAG in d:
        return datetime.fromisoformat(d[_DT_TAG])
    return d


def dumps(obj: Any, **kwargs: Any) -> str:
    return json.dumps(obj, default=_encode, ensure_ascii=False, **kwargs)


def loads(s: str) -> Any:
    return json.loads(s, object_hook=_decode)


def export_dumps(obj: Any) -> str:
    # Human-readable export: plain ISO strings, no tags.
    def _plain(o: Any) -> Any:
        if isinstance(o, (datetime, date)):
            return o.isoformat()
        return _encode(o)

    return json.dumps(obj, default=_plain, ensure_ascii=False, indent=2)
