"""
Módulo de usuarios

Vincula la identidad emitida por el proveedor externo con un usuario
interno (nombre y rol: admin, supervisor o member). El usuario se crea
automáticamente la primera vez que se ve una identidad nueva.
"""
