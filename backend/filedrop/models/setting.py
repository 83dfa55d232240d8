"""Setting model - key/value JSON documents (runtime application settings)."""
from sqlalchemy import String, JSON
from sqlalchemy.orm import Mapped, mapped_column
from filedrop.models.base import Base, TimestampMixin


class Setting(Base, TimestampMixin):
    __tablename__ = "settings"

    id: Mapped[int] = mapped_column(primary_key=True, autoincrement=True)
    key: Mapped[str] = mapped_column(String(100), nullable=False, unique=True)
    value: Mapped[dict] = mapped_column(JSON, default=dict)
