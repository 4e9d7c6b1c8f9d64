"""
Módulo de socios

- Alta de socios y cargos (cuotas)
- Cuenta corriente con saldo acumulado por socio
- Cobro total o parcial de cuotas, reflejado en caja y lote
- Barrido diario de cuotas vencidas (Celery beat)
"""
