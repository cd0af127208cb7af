from __future__ import annotations
import hashlib
import json
from typing import Any, Iterable, Optional

from fastapi import Request
from fastapi.responses import JSONResponse, Response

from retail_dashboard.core.config import settings

# ---------------------------------------------------------------------------
# Helpers de ETag
# ---------------------------------------------------------------------------

def make_etag_from_bytes(body: bytes) -> str:
    return hashlib.md5(body).hexdigest()


def dumps_deterministic(obj: Any) -> bytes:
    return json.dumps(
        obj,
        ensure_ascii=False,
        separators=(",", ":"),
        sort_keys=True,
    ).encode("utf-8")


def payload_etag(payload: dict, volatile_keys: Iterable[str] = ()) -> str:
    """ETag do conteúdo, ignorando chaves que mudam a cada cálculo (ex.: ``computed_at``)."""
    skip = set(volatile_keys)
    stable = {key: value for key, value in payload.items() if key not in skip}
    return make_etag_from_bytes(dumps_deterministic(stable))


# ---------------------------------------------------------------------------
# Aplicação de headers (Cache-Control, ETag, Vary)
# ---------------------------------------------------------------------------

def _cache_control_value(max_age: Optional[int], swr: Optional[int]) -> str:
    max_age = settings.CACHE_MAX_AGE if max_age is None else max_age
    swr = settings.CACHE_SWR if swr is None else swr
    return f"max-age={int(max_age)}, stale-while-revalidate={int(swr)}"


def apply_cache_headers(
    response: Response,
    etag: str,
    *,
    max_age: Optional[int] = None,
    swr: Optional[int] = None,
) -> None:
    # o conteúdo depende do visualizador (ações dos alertas)
    response.headers["ETag"] = etag
    response.headers["Cache-Control"] = _cache_control_value(max_age, swr)
    response.headers["Vary"] = "Authorization"


# ---------------------------------------------------------------------------
# Resposta JSON com ETag (+ 304 se bater If-None-Match)
# ---------------------------------------------------------------------------

def etag_json(
    request: Request,
    payload: dict,
    *,
    volatile_keys: Iterable[str] = (),
    max_age: Optional[int] = None,
    swr: Optional[int] = None,
) -> Response:
    etag = payload_etag(payload, volatile_keys)

    inm = request.headers.get("If-None-Match")
    if inm and inm == etag:
        resp = Response(status_code=304)
        apply_cache_headers(resp, etag, max_age=max_age, swr=swr)
        return resp

    resp = JSONResponse(content=payload)
    apply_cache_headers(resp, etag, max_age=max_age, swr=swr)
    return resp
