from datetime import datetime

from sqlalchemy.orm import declarative_base

class DictMixin:
    """
    Mixin providing a standardized dictionary serialization for SQLAlchemy models.
    """
    def to_dict(self):
        data = {}
        for c in self.__table__.columns:
            value = getattr(self, c.name)
            data[c.name] = value.isoformat() if isinstance(value, datetime) else value
        return data

Base = declarative_base(cls=DictMixin)
