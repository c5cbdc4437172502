"""
Pipeline de sincronización: API de sesiones -> tablas planas.

Este paquete está diseñado para ejecutarse como job (cron / task scheduler)
o desde un endpoint que lo corre en un thread aparte.

Objetivos de diseño:
- Idempotencia: se puede ejecutar N veces sin duplicar filas (UPSERT por clave).
- Tolerancia a fallos parciales: una página o una sesión que falla degrada
  su aporte, no aborta el lote.
- Configuración explícita: ningún componente lee variables de entorno.
"""
