from __future__ import annotations
import asyncio
from typing import Any, Dict, List, Optional, Sequence, Tuple
import httpx

from retail_dashboard.core.config import settings
from retail_dashboard.domain.errors import QueryError


def _default_headers(request_id: Optional[str] = None) -> Dict[str, str]:
    key = settings.DATA_API_KEY or ""
    headers = {
        "apikey": key,
        "Authorization": f"Bearer {key}",
        "Accept": "application/json",
    }
    if request_id:
        headers["X-Request-Id"] = request_id
    return headers


async def _request_with_retries(
    client: httpx.AsyncClient,
    method: str,
    url: str,
    *,
    params: Optional[Sequence[Tuple[str, str]]] = None,
    headers: Optional[Dict[str, str]] = None,
    retries: int = 2,
    backoff_base: float = 0.25,
) -> httpx.Response:
    attempt = 0
    while True:
        last_attempt = attempt >= retries
        try:
            resp = await client.request(
                method=method.upper(),
                url=url,
                params=params,
                headers=headers,
            )
            # 2xx ok; 4xx: não adianta tentar de novo; 5xx na última tentativa volta como está
            if resp.status_code < 500 or last_attempt:
                return resp
        except (httpx.TimeoutException, httpx.NetworkError):
            if last_attempt:
                raise
        attempt += 1
        await asyncio.sleep(backoff_base * (2 ** (attempt - 1)))


class RestClient:
    """
    Cliente somente-leitura da API REST (estilo PostgREST) do banco hospedado.

    Cada falha vira um ``QueryError`` com o nome da coleção consultada.
    """

    def __init__(
        self,
        base_url: Optional[str] = None,
        *,
        timeout: Optional[float] = None,
        retries: Optional[int] = None,
        transport: Optional[httpx.AsyncBaseTransport] = None,
    ):
        base = base_url or settings.DATA_API_URL
        if not base:
            raise ValueError("DATA_API_URL não configurada.")
        self.base_url = base.rstrip("/")
        self.timeout = settings.FETCH_TIMEOUT_SECONDS if timeout is None else timeout
        self.retries = settings.FETCH_RETRIES if retries is None else retries
        self._transport = transport

    def _client(self) -> httpx.AsyncClient:
        return httpx.AsyncClient(timeout=self.timeout, transport=self._transport)

    async def select(
        self,
        table: str,
        params: Sequence[Tuple[str, str]],
        *,
        collection: Optional[str] = None,
        request_id: Optional[str] = None,
    ) -> List[Dict[str, Any]]:
        url = f"{self.base_url}/rest/v1/{table}"
        collection = collection or table
        try:
            async with self._client() as client:
                resp = await _request_with_retries(
                    client,
                    "GET",
                    url,
                    params=params,
                    headers=_default_headers(request_id),
                    retries=self.retries,
                )
        except httpx.HTTPError as exc:
            raise QueryError(collection, f"Falha de rede: {exc}") from exc

        if not (200 <= resp.status_code < 300):
            try:
                details = resp.json()
            except ValueError:
                details = {"raw": resp.text[:500]}
            raise QueryError(collection, "Erro ao consultar registros", status_code=resp.status_code, details=details)

        try:
            payload = resp.json()
        except ValueError as exc:
            raise QueryError(collection, "Resposta JSON inválida", status_code=resp.status_code, details={"error": str(exc)}) from exc

        if not isinstance(payload, list):
            raise QueryError(collection, "Resposta inesperada: esperado uma lista de registros", status_code=resp.status_code)
        return payload

    async def ping(self) -> bool:
        try:
            async with self._client() as client:
                resp = await client.get(f"{self.base_url}/rest/v1/", headers=_default_headers())
        except httpx.HTTPError:
            return False
        return resp.status_code < 500
