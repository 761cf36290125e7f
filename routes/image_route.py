from fastapi import APIRouter, HTTPException, Request
from fastapi.responses import FileResponse

router = APIRouter()


@router.get("/images/{name}")
async def get_scene_image(request: Request, name: str):
	"""Return the bytes of a generated scene image."""
	image_store = getattr(request.app.state, "image_store", None)
	if image_store is None:
		raise HTTPException(status_code=500, detail="Image store unavailable")
	path = image_store.resolve(name)
	if path is None:
		raise HTTPException(status_code=404, detail="Image not found")
	return FileResponse(path)
