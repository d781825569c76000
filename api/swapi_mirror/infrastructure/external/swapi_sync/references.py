"""
URLs de referencia: extraccion de IDs y traduccion remota -> local.

Una URL de referencia tiene la forma `{base}/{entity_type}/{id}/`.
La base cambia entre la API remota y el API local; el resto es identico.

Se mantiene libre de I/O para poder testearlo fácilmente.
"""

from __future__ import annotations

import re
from typing import Any, Iterable, Optional

from swapi_mirror.shared.exceptions.sync import MalformedReferenceError


_TRAILING_ID = re.compile(r"/(\d+)/?$")
_TYPE_AND_ID = re.compile(r"/([^/]+)/\d+/?$")


def extract_id(url: Any) -> int:
    """
    Extrae el ID numerico del ultimo segmento de la URL.

    "https://swapi.dev/api/people/1/" -> 1

    Raises:
        MalformedReferenceError: Si la URL no termina en un segmento numerico
    """
    if not isinstance(url, str):
        raise MalformedReferenceError(url)
    match = _TRAILING_ID.search(url)
    if not match:
        raise MalformedReferenceError(url)
    return int(match.group(1))


def extract_ids(urls: Iterable[Any]) -> list[int]:
    """extract_id elemento a elemento; falla si falla cualquiera."""
    return [extract_id(u) for u in urls]


def entity_type_from_url(url: Any) -> str:
    """
    Extrae el tipo de entidad (segmento anterior al ID).

    "https://swapi.dev/api/planets/1/" -> "planets"
    """
    if not isinstance(url, str):
        raise MalformedReferenceError(url)
    match = _TYPE_AND_ID.search(url)
    if not match:
        raise MalformedReferenceError(url)
    return match.group(1)


class ReferenceTranslator:
    """
    Traduce URLs del esquema remoto al local.

    Ademas de reescribir la base, mantiene un mapa de identidad
    URL remota -> URL local que llena el importador base con la URL real
    de cada fila. La API remota tiene huecos de IDs (people/17 no existe),
    por lo que los IDs locales no coinciden con los remotos y reescribir
    la base no alcanza para ubicar la fila local.
    """

    def __init__(self, remote_base: str, local_base: str) -> None:
        self.remote_base = remote_base.rstrip("/")
        self.local_base = local_base.rstrip("/")
        self._identity: dict[str, str] = {}

    def local_reference_url(self, entity_type: str, entity_id: int) -> str:
        return f"{self.local_base}/{entity_type}/{entity_id}/"

    def rewrite_base(self, url: str) -> str:
        """Reemplaza el prefijo remoto por el local; no-op si el prefijo no esta."""
        if url.startswith(self.remote_base):
            return self.local_base + url[len(self.remote_base):]
        return url

    def register(self, remote_url: str, local_url: str) -> None:
        self._identity[remote_url] = local_url

    def lookup(self, remote_url: str) -> Optional[str]:
        return self._identity.get(remote_url)

    def to_local(self, url: str) -> Optional[str]:
        """
        URL local para una referencia.

        - Registrada en el mapa de identidad: la URL local real de la fila
        - Con prefijo remoto pero sin registrar: None (el registro nunca se
          importo; reescribir la base apuntaria a otra fila con ese ID)
        - Sin prefijo remoto: ya es local, se devuelve sin cambios
        """
        local_url = self.lookup(url)
        if local_url is not None:
            return local_url
        if url.startswith(self.remote_base):
            return None
        return url

    def __len__(self) -> int:
        return len(self._identity)
