"""Import all models so SQLAlchemy metadata knows about them."""
from filerelay.models.base import Base
from filerelay.models.file_link import FileLink

__all__ = ["Base", "FileLink"]
