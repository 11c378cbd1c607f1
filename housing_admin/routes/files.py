import io
from typing import List

import structlog
from fastapi import APIRouter, Depends, File, HTTPException, UploadFile
from fastapi.responses import FileResponse, RedirectResponse

from ..auth.security import get_current_user
from ..baas.client import get_baas
from ..baas.local_provider import LocalProvider
from ..baas.provider import BaaSProvider
from ..config import settings
from ..errors import surface_errors, validation_error
from ..schemas.files import FileRef, UploadedImages
from ..services.images import compress_image, jpeg_name


logger = structlog.get_logger(__name__)

router = APIRouter(prefix="/files", tags=["files"])


@router.post("/upload", response_model=FileRef)
def upload(file: UploadFile = File(...), baas: BaaSProvider = Depends(get_baas), _=Depends(get_current_user)):
    with surface_errors("Error uploading file", filename=file.filename):
        stored = baas.create_file(file.file, file.filename or "file", file.content_type)
    return FileRef(id=stored["$id"], url=baas.file_view_url(stored["$id"]))


@router.post("/images", response_model=UploadedImages)
def upload_images(
    files: List[UploadFile] = File(...),
    baas: BaaSProvider = Depends(get_baas),
    _=Depends(get_current_user),
):
    if len(files) > settings.max_ticket_images:
        raise validation_error({"files": f"Maximum {settings.max_ticket_images} images allowed"})

    # Compress everything first so a bad file does not leave a partial upload
    prepared = []
    for f in files:
        try:
            prepared.append((jpeg_name(f.filename), compress_image(f.file.read())))
        except ValueError as e:
            raise validation_error({"files": f"{f.filename}: {e}"}) from e

    images = []
    with surface_errors("Error uploading images"):
        for name, content in prepared:
            stored = baas.create_file(io.BytesIO(content), name, "image/jpeg")
            images.append(FileRef(id=stored["$id"], url=baas.file_view_url(stored["$id"])))
    logger.info("images_uploaded", count=len(images))
    return UploadedImages(images=images)


@router.get("/local/{file_id}")
def serve_local(file_id: str, baas: BaaSProvider = Depends(get_baas)):
    if not isinstance(baas, LocalProvider):
        raise HTTPException(status_code=404, detail="Not found")
    with surface_errors("File not found", file_id=file_id):
        path, content_type = baas.open_file(file_id)
    return FileResponse(str(path), media_type=content_type or "application/octet-stream")


@router.get("/{file_id}/preview")
def preview(file_id: str, baas: BaaSProvider = Depends(get_baas), _=Depends(get_current_user)):
    return RedirectResponse(url=baas.file_preview_url(file_id))
