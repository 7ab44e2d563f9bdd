"""FileLink model - public id to Telegram file_id mapping (bytes live in Telegram)."""
from sqlalchemy import Text
from sqlalchemy.orm import Mapped, mapped_column
from filerelay.models.base import Base, TimestampMixin


class FileLink(Base, TimestampMixin):
    __tablename__ = "file_links"

    # Extensions are copied from client filenames, so ids have no fixed length
    public_id: Mapped[str] = mapped_column(Text, primary_key=True)
    file_id: Mapped[str] = mapped_column(Text, nullable=False)
