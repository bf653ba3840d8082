"""
Base model mixins
"""
import uuid
from datetime import datetime
from sqlalchemy import Column, DateTime, Uuid


class UUIDMixin:
    """Mixin for UUID primary key"""
    id = Column(Uuid(as_uuid=True), primary_key=True, default=uuid.uuid4, index=True)


class CreatedAtMixin:
    """Mixin for an insertion timestamp; rows are never updated in place"""
    created_at = Column(DateTime, default=datetime.utcnow, index=True)
