"""Router for app info endpoint."""

from fastapi import APIRouter
from pydantic import BaseModel

from lokichunk import __version__
from lokichunk.compression import ENCODINGS

router = APIRouter()


class AppInfo(BaseModel):
    """Service name, version and supported codecs."""

    name: str
    version: str
    encodings: list[str]


@router.get("/info", response_model=AppInfo)
def get_app_info() -> AppInfo:
    """Return service version and the codecs it can decode."""
    return AppInfo(
        name="lokichunk",
        version=__version__,
        encodings=[encoding.name for encoding in ENCODINGS],
    )
