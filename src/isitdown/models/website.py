import uuid
from datetime import datetime
from sqlalchemy import String, DateTime, Integer, Text
from sqlalchemy.orm import Mapped, mapped_column

from isitdown.database import Base


class Website(Base):
    __tablename__ = "websites"

    id: Mapped[str] = mapped_column(
        String(36), primary_key=True, default=lambda: str(uuid.uuid4())
    )
    url: Mapped[str] = mapped_column(Text, nullable=False, index=True)
    name: Mapped[str | None] = mapped_column(String(255), nullable=True)
    status: Mapped[str] = mapped_column(String(20), default="unknown")  # up, down, unknown
    last_checked: Mapped[datetime | None] = mapped_column(DateTime, nullable=True, index=True)
    response_time: Mapped[int | None] = mapped_column(Integer, nullable=True)  # ms
