"""
Excepciones del pipeline de importación SWAPI -> base de datos local.

Taxonomía:
- Fatales: abortan la fase en curso (rollback completo) y se propagan al driver.
- Recuperables (nombre duplicado, relación no resuelta): no se modelan como
  excepciones; se registran en el log en el punto donde ocurren.
"""
from typing import Any, Optional

from swapi_mirror.shared.exceptions.base import AppException


class SyncError(AppException):
    """Excepción base para errores del pipeline de sincronización."""
    
    def __init__(self, message: str, error_code: str = "SYNC_ERROR", details=None):
        super().__init__(
            message=message,
            error_code=error_code,
            details=details
        )


class MalformedReferenceError(SyncError):
    """La URL de referencia no termina en un segmento numérico."""
    
    def __init__(self, url: Any):
        super().__init__(
            message=f"URL de referencia inválida, no contiene un ID numérico: {url!r}",
            error_code="MALFORMED_REFERENCE",
            details={"url": str(url)}
        )
        self.url = url


class FetchError(SyncError):
    """Fallo de transporte o respuesta inesperada de la API remota."""
    
    def __init__(self, message: str, url: Optional[str] = None, status_code: Optional[int] = None):
        details = {"url": url}
        if status_code is not None:
            details["status_code"] = status_code
        super().__init__(
            message=message,
            error_code="FETCH_ERROR",
            details=details
        )
        self.url = url
        self.status_code = status_code


class MalformedRecordError(SyncError):
    """Un registro remoto no tiene la forma esperada (campo faltante o tipo incorrecto)."""
    
    def __init__(self, entity_type: str, message: str):
        super().__init__(
            message=f"Registro '{entity_type}' inválido: {message}",
            error_code="MALFORMED_RECORD",
            details={"entity_type": entity_type}
        )
        self.entity_type = entity_type


class StoreError(SyncError):
    """Fallo de la capa de persistencia durante un save o un insert masivo."""
    
    def __init__(self, operation: str, table: str, cause: Exception):
        super().__init__(
            message=f"Error de base de datos en {operation} sobre '{table}': {cause}",
            error_code="STORE_ERROR",
            details={"operation": operation, "table": table}
        )
        self.operation = operation
        self.table = table


class UnsupportedRelationError(SyncError):
    """Una relación declarada apunta a un tipo de entidad sin repositorio."""
    
    def __init__(self, owner_type: str, relation_name: str, target_type: str):
        super().__init__(
            message=(
                f"La relación '{owner_type}.{relation_name}' apunta a '{target_type}', "
                f"que no tiene repositorio registrado"
            ),
            error_code="UNSUPPORTED_RELATION",
            details={
                "owner_type": owner_type,
                "relation": relation_name,
                "target_type": target_type,
            }
        )


class SyncPhaseError(SyncError):
    """
    Una fase del pipeline falló y su transacción fue revertida.

    La excepción original queda encadenada en __cause__.
    """
    
    def __init__(self, phase: str, cause: Exception):
        super().__init__(
            message=f"La fase '{phase}' falló y fue revertida: {cause}",
            error_code="SYNC_PHASE_FAILED",
            details={"phase": phase, "cause": type(cause).__name__}
        )
        self.phase = phase


class SyncConfigError(SyncError):
    """Error de configuración del pipeline."""
    
    def __init__(self, message: str):
        super().__init__(
            message=message,
            error_code="SYNC_CONFIG_ERROR"
        )
