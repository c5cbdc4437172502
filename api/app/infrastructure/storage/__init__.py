"""
Almacenamiento tabular: tablas de encabezado + filas, y el motor de UPSERT.

- table_store: contrato Table/TableStorage e implementación en memoria
- pg_table_store: implementación sobre PostgreSQL (psycopg)
- upsert: reconciliación de encabezados, UPSERT por lote y dedup
- sync_stats_repository: contadores por categoría
"""
