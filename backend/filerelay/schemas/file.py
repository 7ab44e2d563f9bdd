"""Upload/download response schemas."""
from pydantic import BaseModel


class UploadedFile(BaseModel):
    hash: str
    name: str
    url: str
    size: int


class UploadResponse(BaseModel):
    success: bool = True
    files: list[UploadedFile]


class ErrorResponse(BaseModel):
    success: bool = False
    error: str
