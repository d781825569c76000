"""
Pipeline de importación one-way: SWAPI -> base de datos local.

Este paquete está diseñado para ejecutarse como job (CLI / cron),
no como parte del request/response del API.

Objetivos de diseño:
- Recarga completa: cada corrida recorre el catalogo remoto entero.
- Dos fases transaccionales: filas base primero, relaciones despues.
- Idempotencia: nombres duplicados se omiten y las filas de union repetidas se ignoran.
- URLs de referencia reescritas al esquema local antes de relacionar.
"""
