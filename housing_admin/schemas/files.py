from typing import List
from pydantic import BaseModel


class FileRef(BaseModel):
    id: str = ""
    url: str


class UploadedImages(BaseModel):
    images: List[FileRef]
