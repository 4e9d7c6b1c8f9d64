"""
Módulo de lotes de operaciones

ENTIDADES PRINCIPALES:
- TillBatch: sesión de una caja, de la apertura al cierre
- TillBatchDetail: ingresos y egresos registrados mientras el lote está abierto

REGLAS:
- Un solo lote abierto por usuario y caja
- El cierre es irreversible y arquea solo las cuentas de efectivo
"""
