"""
Image Storage Service

Stores book cover images and removes them again when a book is deleted,
when its cover is replaced, or when a mutation fails after the upload.

Every backend implements the same small interface:

    store(upload, parts) -> ref   # ref is the public URL of the image
    remove(ref) -> None

Backends:
- LocalImageStore: files on disk, served by the /images static mount
- CloudinaryImageStore: signed uploads to the Cloudinary REST API (httpx)

The backend is chosen once from settings.image_storage by
build_image_store(); call sites never branch on the backend.
"""

import hashlib
import logging
import re
import time
from dataclasses import dataclass
from pathlib import Path
from typing import Protocol
from urllib.parse import urlparse

import httpx

from grimoire.exceptions import ImageStorageError, InvalidFileTypeError, MissingImageError

logger = logging.getLogger(__name__)

# Accepted MIME types and the extension used when storing them
MIME_TYPES = {
    "image/jpg": "jpg",
    "image/jpeg": "jpg",
    "image/png": "png",
}


@dataclass(frozen=True)
class ImageUpload:
    """An image received in a multipart request, fully read into memory."""

    filename: str
    content_type: str
    content: bytes

    @property
    def extension(self) -> str:
        return MIME_TYPES[self.content_type]


@dataclass(frozen=True)
class ImageNameParts:
    """Book fields used to build a readable file name."""

    author: str
    title: str
    year: int


def validate_image(upload: ImageUpload | None) -> ImageUpload:
    """
    Check that an image was sent and that its type is accepted.

    Pure function: the result is returned, nothing is kept between calls.

    Raises:
        MissingImageError: No file or an empty file
        InvalidFileTypeError: MIME type other than jpg/jpeg/png
    """
    if upload is None or not upload.content:
        raise MissingImageError()
    if upload.content_type not in MIME_TYPES:
        raise InvalidFileTypeError()
    return upload


def build_image_name(parts: ImageNameParts, extension: str) -> str:
    """
    Build "<author>_<title>_<year>_<millis>.<ext>".

    Lower-cased, spaces replaced by "-", and anything that is not a letter,
    digit, "-" or "_" dropped so the name is safe on disk and in URLs.
    """
    stem = f"{parts.author}_{parts.title}_{parts.year}_".lower().replace(" ", "-")
    stem = re.sub(r"[^a-z0-9_-]", "", stem)
    return f"{stem}{int(time.time() * 1000)}.{extension}"


class ImageStore(Protocol):
    def store(self, upload: ImageUpload, parts: ImageNameParts) -> str: ...

    def remove(self, ref: str) -> None: ...


# =============================================================================
# Local Disk Backend
# =============================================================================
class LocalImageStore:
    """
    Store images in a local directory.

    Refs look like "<public_url>/images/<file name>"; remove() only uses the
    last path segment, so a ref can never point outside the directory.
    """

    url_path = "images"

    def __init__(self, directory: str | Path, public_url: str) -> None:
        self.directory = Path(directory)
        self.public_url = public_url.rstrip("/")

    def store(self, upload: ImageUpload, parts: ImageNameParts) -> str:
        name = build_image_name(parts, upload.extension)
        try:
            self.directory.mkdir(parents=True, exist_ok=True)
            (self.directory / name).write_bytes(upload.content)
        except OSError as exc:
            logger.error(f"Could not write image {name}: {exc}")
            raise ImageStorageError() from exc

        logger.info(f"Image stored: {name}")
        return f"{self.public_url}/{self.url_path}/{name}"

    def path_for(self, ref: str) -> Path:
        name = Path(urlparse(ref).path).name
        return self.directory / name

    def remove(self, ref: str) -> None:
        path = self.path_for(ref)
        try:
            path.unlink()
        except FileNotFoundError:
            logger.warning(f"Image already gone: {path.name}")
        except OSError as exc:
            logger.error(f"Could not remove image {path.name}: {exc}")
            raise ImageStorageError("The image could not be removed") from exc
        else:
            logger.info(f"Image removed: {path.name}")


# =============================================================================
# Cloudinary Backend
# =============================================================================
class CloudinaryImageStore:
    """
    Store images on Cloudinary through its REST upload API.

    Requests are signed with the API secret: the signature is the SHA-1 of
    the alphabetically sorted parameters followed by the secret.
    """

    api_base = "https://api.cloudinary.com/v1_1"

    def __init__(
        self,
        cloud_name: str,
        api_key: str,
        api_secret: str,
        folder: str,
        client: httpx.Client | None = None,
    ) -> None:
        self.cloud_name = cloud_name
        self.api_key = api_key
        self.api_secret = api_secret
        self.folder = folder
        self.client = client or httpx.Client(timeout=30.0)

    def sign(self, params: dict) -> str:
        to_sign = "&".join(f"{key}={params[key]}" for key in sorted(params))
        return hashlib.sha1(f"{to_sign}{self.api_secret}".encode()).hexdigest()

    def _signed(self, params: dict) -> dict:
        params = {**params, "timestamp": int(time.time())}
        return {**params, "api_key": self.api_key, "signature": self.sign(params)}

    def _post(self, action: str, data: dict, files: dict | None = None) -> dict:
        url = f"{self.api_base}/{self.cloud_name}/image/{action}"
        try:
            response = self.client.post(url, data=data, files=files)
            response.raise_for_status()
        except httpx.HTTPError as exc:
            logger.error(f"Cloudinary {action} failed: {exc}")
            raise ImageStorageError() from exc
        return response.json()

    def store(self, upload: ImageUpload, parts: ImageNameParts) -> str:
        public_id = build_image_name(parts, upload.extension).rsplit(".", 1)[0]
        data = self._signed({"folder": self.folder, "public_id": public_id})
        files = {"file": (upload.filename, upload.content, upload.content_type)}

        payload = self._post("upload", data, files)
        ref = payload.get("secure_url")
        if not ref:
            raise ImageStorageError()

        logger.info(f"Image uploaded to Cloudinary: {payload.get('public_id')}")
        return ref

    @staticmethod
    def public_id_for(ref: str) -> str:
        """
        Extract the public id from a delivery URL.

        https://res.cloudinary.com/<cloud>/image/upload/v17/<folder>/<name>.png
        -> "<folder>/<name>"
        """
        path = urlparse(ref).path
        _, _, tail = path.partition("/upload/")
        segments = [segment for segment in tail.split("/") if segment]
        if segments and re.fullmatch(r"v\d+", segments[0]):
            segments = segments[1:]
        if not segments:
            raise ImageStorageError("Not a Cloudinary image URL")
        segments[-1] = segments[-1].rsplit(".", 1)[0]
        return "/".join(segments)

    def remove(self, ref: str) -> None:
        public_id = self.public_id_for(ref)
        payload = self._post("destroy", self._signed({"public_id": public_id}))
        if payload.get("result") not in ("ok", "not found"):
            raise ImageStorageError("The image could not be removed")
        logger.info(f"Image removed from Cloudinary: {public_id}")


def build_image_store(settings) -> ImageStore:
    """Create the backend selected by settings.image_storage."""
    if settings.image_storage == "cloudinary":
        return CloudinaryImageStore(
            cloud_name=settings.cloudinary_cloud_name,
            api_key=settings.cloudinary_api_key,
            api_secret=settings.cloudinary_api_secret,
            folder=settings.cloudinary_folder,
        )
    return LocalImageStore(settings.images_dir, settings.public_url)


def discard_image(store: ImageStore, ref: str | None) -> None:
    """
    Best-effort removal used to roll back an upload.

    Failures are logged and swallowed so the original error reaches the client.
    """
    if not ref:
        return
    try:
        store.remove(ref)
    except ImageStorageError as exc:
        logger.warning(f"Rollback of image {ref} failed: {exc}")
