"""
Validadores específicos para Argentina
"""
import re
from typing import Optional


CUIT_WEIGHTS = [5, 4, 3, 2, 7, 6, 5, 4, 3, 2]


def calculate_cuit_dv(base: str) -> Optional[int]:
    """
    Calcula el dígito verificador de un CUIT/CUIL a partir de sus
    primeros 10 dígitos (módulo 11).
    """
    cleaned = re.sub(r'[\.\s\-]', '', base or '')
    if len(cleaned) != 10 or not cleaned.isdigit():
        return None

    suma = sum(int(d) * w for d, w in zip(cleaned, CUIT_WEIGHTS))
    resto = 11 - (suma % 11)

    if resto == 11:
        return 0
    if resto == 10:
        return 9
    return resto


def validate_cuit(cuit: str) -> bool:
    """
    Valida CUIT/CUIL argentino.
    - 11 dígitos, acepta guiones y puntos (XX-XXXXXXXX-X)
    - Dígito verificador correcto
    """
    cleaned = re.sub(r'[\.\s\-]', '', cuit or '')

    if len(cleaned) != 11 or not cleaned.isdigit():
        return False

    return calculate_cuit_dv(cleaned[:10]) == int(cleaned[-1])


def format_cuit(cuit: str) -> str:
    """
    Formatea CUIT al formato estándar XX-XXXXXXXX-X
    """
    if not validate_cuit(cuit):
        return cuit  # Retorna sin cambios si no es válido

    cleaned = re.sub(r'[\.\s\-]', '', cuit)
    return f"{cleaned[:2]}-{cleaned[2:10]}-{cleaned[10]}"


def validate_dni(documento: str) -> bool:
    """
    Valida DNI argentino.
    - Entre 7 y 8 dígitos
    - Solo números (acepta puntos de miles)
    """
    cleaned = re.sub(r'[\.\s]', '', documento or '')
    return cleaned.isdigit() and 7 <= len(cleaned) <= 8


def format_dni(documento: str) -> str:
    """
    Normaliza DNI removiendo puntos y espacios
    """
    if not validate_dni(documento):
        return documento
    return re.sub(r'[\.\s]', '', documento)
