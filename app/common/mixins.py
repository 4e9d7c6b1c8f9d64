"""
Common mixins for models
"""
from sqlalchemy import Column, DateTime, Boolean
from sqlalchemy.sql import func


class TimestampMixin:
    """Mixin for models that need timestamp tracking"""

    created_at = Column(DateTime(timezone=True), server_default=func.now(), nullable=False)
    updated_at = Column(DateTime(timezone=True), server_default=func.now(), onupdate=func.now(), nullable=False)


class ActiveMixin:
    """Mixin for reference data that can be disabled without deleting it"""

    activo = Column(Boolean, default=True, nullable=False)
