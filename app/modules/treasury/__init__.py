"""
Datos de referencia de tesorería: cuentas, conceptos, cajas y proveedores.
"""
