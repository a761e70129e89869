from fastapi import APIRouter

from truecrime_studio import __version__

router = APIRouter(tags=["health"])


@router.get("/health")
def health():
    return {"status": "ok", "version": __version__}
