"""Decode flat request parameters into a QueryIR."""

from __future__ import annotations

import json
from collections.abc import Mapping
from typing import Any

from sqla_rls.ir._models import QueryIR

__all__ = ["parse_query_params"]


def parse_query_params(params: Mapping[str, Any], *, default_limit: int | None = None) -> QueryIR:
    """Build a :class:`QueryIR` from query-string style parameters.

    String values are JSON-decoded where possible, so
    ``{"filter": '{"status": "active"}', "limit": "5"}`` is accepted.
    Strings that are not JSON are kept as-is; a ``limit`` or ``offset``
    that does not decode falls back to its default.

    Example::

        ir = parse_query_params(request.query_params)
    """
    decoded: dict[str, Any] = {}
    for key, value in params.items():
        if isinstance(value, str):
            try:
                decoded[key] = json.loads(value)
            except ValueError:
                if key in ("limit", "offset"):
                    continue
                decoded[key] = value
        else:
            decoded[key] = value
    return QueryIR.from_dict(decoded, default_limit=default_limit)
