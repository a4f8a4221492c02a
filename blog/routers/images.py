from fastapi import APIRouter, Depends, File, HTTPException, Query, UploadFile

from blog.config import settings
from blog.dependencies import get_image_store
from blog.schemas import ImageUploadResponse, MessageResponse
from blog.services import image_service
from blog.services.image_service import ImageStore

router = APIRouter(prefix="/api/v1/images", tags=["images"])


# Plain ``def`` endpoints: decoding and encoding are CPU-bound, so FastAPI
# runs them in its worker thread pool instead of on the event loop.

@router.post(
    "",
    status_code=201,
    response_model=ImageUploadResponse,
    response_model_exclude_none=True,
)
def upload_image(
    image: UploadFile | None = File(None),
    store: ImageStore = Depends(get_image_store),
):
    if image is None:
        raise HTTPException(status_code=400, detail="No image provided")
    data = image_service.read_limited(image.file, settings.IMAGE_MAX_UPLOAD_BYTES)
    return image_service.process_upload(data, store)


@router.delete("", response_model=MessageResponse)
def delete_image(
    path: str = Query(..., min_length=1, description="Stored path, e.g. images/<file>.jpg"),
    store: ImageStore = Depends(get_image_store),
):
    if not store.delete(path):
        raise HTTPException(status_code=404, detail="Image not found")
    return {"message": "Image deleted successfully"}
