"""
Cliente mínimo de la API remota SWAPI (https://swapi.dev/api).

Requisitos cubiertos:
- httpx async con timeout explicito
- paginación siguiendo el campo 'next' hasta null
- validacion de la forma de cada pagina con pydantic
- sin reintentos: cualquier fallo aborta la fase en curso
"""

from __future__ import annotations

from typing import Any, AsyncIterator, Optional

import httpx
from loguru import logger
from pydantic import BaseModel, ValidationError

from swapi_mirror.shared.exceptions.sync import FetchError


class SwapiPage(BaseModel):
    """Pagina de un listado SWAPI: {count, next, previous, results}."""

    count: int
    next: Optional[str] = None
    previous: Optional[str] = None
    results: list[dict[str, Any]]


class SwapiClient:
    """
    Cliente HTTP de SWAPI. Expone un async generator que produce los
    registros crudos (dict) de un tipo de entidad.

    Importante:
    - No interpreta los campos: eso lo decide el importador.
    - Una request por pagina; nunca visita dos veces la misma URL.
    """

    def __init__(
        self,
        base_url: str = "https://swapi.dev/api",
        *,
        timeout_s: float = 30.0,
        http_client: Optional[httpx.AsyncClient] = None,
    ) -> None:
        self._base_url = base_url.rstrip("/")
        self._timeout_s = timeout_s
        self._owns_client = http_client is None
        self._client = http_client or httpx.AsyncClient(timeout=timeout_s)

    def list_url(self, entity_type: str) -> str:
        return f"{self._base_url}/{entity_type}/"

    async def iter_records(self, entity_type: str) -> AsyncIterator[dict[str, Any]]:
        """
        Itera todos los registros de un tipo de entidad, pagina por pagina.

        Raises:
            FetchError: Respuesta no 2xx, error de transporte, JSON invalido,
                forma inesperada o un cursor 'next' ya visitado
        """
        url: Optional[str] = self.list_url(entity_type)
        visited: set[str] = set()
        page_number = 0

        while url:
            if url in visited:
                raise FetchError(
                    f"Cursor de paginacion repetido para '{entity_type}': {url}",
                    url=url,
                )
            visited.add(url)
            page_number += 1

            page = await self._fetch_page(url)
            logger.debug(
                f"SWAPI '{entity_type}' pagina {page_number}: "
                f"{len(page.results)} registros (count={page.count})"
            )

            for record in page.results:
                yield record

            url = page.next

    async def _fetch_page(self, url: str) -> SwapiPage:
        try:
            resp = await self._client.get(url, timeout=self._timeout_s)
        except httpx.HTTPError as e:
            raise FetchError(f"Error de transporte al consultar SWAPI: {e}", url=url) from e

        if not (200 <= resp.status_code < 300):
            raise FetchError(
                f"SWAPI respondio {resp.status_code}: {resp.text[:500]}",
                url=url,
                status_code=resp.status_code,
            )

        try:
            payload = resp.json()
        except ValueError as e:
            raise FetchError(f"SWAPI devolvio un cuerpo que no es JSON: {e}", url=url) from e

        try:
            return SwapiPage.model_validate(payload)
        except ValidationError as e:
            raise FetchError(f"Pagina SWAPI con forma inesperada: {e}", url=url) from e

    async def aclose(self) -> None:
        """Cierra el cliente HTTP si fue creado por esta instancia."""
        if self._owns_client:
            await self._client.aclose()

    async def __aenter__(self) -> "SwapiClient":
        return self

    async def __aexit__(self, exc_type, exc, tb) -> None:
        await self.aclose()
