"""
Política única de visibilidad por rol: el admin ve todo, el resto solo lo propio.
"""
from sqlalchemy.orm import Query

ADMIN_ROLE = "admin"


def is_admin(auth_context) -> bool:
    return auth_context.rol == ADMIN_ROLE


def scope_to_owner(query: Query, owner_column, auth_context) -> Query:
    """
    Restringe `query` a las filas cuyo `owner_column` es el usuario actual,
    salvo para administradores.
    """
    if is_admin(auth_context):
        return query
    return query.filter(owner_column == auth_context.user_id)
