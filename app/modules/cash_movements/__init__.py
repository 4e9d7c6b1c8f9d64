"""
Módulo de movimientos de caja

- Libro general movimientos_caja, independiente de los lotes
- Reflejo de cada movimiento en el lote abierto del usuario
- Transferencias entre cajas con reversión del egreso si el destino falla
"""
