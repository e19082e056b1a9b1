from __future__ import annotations

import os
import tempfile
from typing import Any, BinaryIO, Dict

from social_auth.config import Config


_CHUNK = 1024 * 1024


def _debug(msg: str) -> None:
    print(f"[media] {msg}")


class FileTooLarge(ValueError):
    pass


def _get_cloudinary(cfg: Config):
    try:
        import cloudinary  # type: ignore
        import cloudinary.uploader  # type: ignore
    except Exception as e:
        raise RuntimeError(
            "Uploads need the 'cloudinary' package. Install cloudinary and try again."
        ) from e

    if not (cfg.CLOUDINARY_CLOUD_NAME and cfg.CLOUDINARY_API_KEY and cfg.CLOUDINARY_API_SECRET):
        raise RuntimeError("cloudinary_credentials_missing")

    cloudinary.config(
        cloud_name=cfg.CLOUDINARY_CLOUD_NAME,
        api_key=cfg.CLOUDINARY_API_KEY,
        api_secret=cfg.CLOUDINARY_API_SECRET,
        secure=True,
    )
    return cloudinary


def stage_to_tempfile(src: BinaryIO, *, filename: str, max_bytes: int) -> str:
    """Copy an incoming upload to a named temp file and return its path.

    Raises FileTooLarge (and removes the partial file) once `max_bytes` is exceeded.
    """
    _, ext = os.path.splitext(filename or "")
    fd, path = tempfile.mkstemp(prefix="upload_", suffix=ext)
    written = 0
    try:
        with os.fdopen(fd, "wb") as dst:
            while True:
                chunk = src.read(_CHUNK)
                if not chunk:
                    break
                written += len(chunk)
                if written > max_bytes:
                    raise FileTooLarge("file_too_large")
                dst.write(chunk)
    except BaseException:
        os.unlink(path)
        raise
    return path


def upload_file(cfg: Config, *, path: str, filename: str) -> Dict[str, Any]:
    """Upload a staged file to Cloudinary. Returns {url, format}."""
    cloudinary = _get_cloudinary(cfg)
    public_id, _ = os.path.splitext(os.path.basename(filename or ""))
    result = cloudinary.uploader.upload(
        path,
        public_id=public_id or None,
        resource_type="auto",
        folder=cfg.CLOUDINARY_FOLDER,
        use_filename=True,
        unique_filename=False,
    )
    url = result.get("secure_url") or result.get("url")
    if not url:
        raise RuntimeError("cloudinary_url_missing")
    return {"url": str(url), "format": result.get("format")}


def upload_asset(cfg: Config, src: BinaryIO, *, filename: str) -> Dict[str, Any]:
    """Stage `src` to temporary storage, forward it to the media host, then clean up.

    The temp file is removed whether or not the upload succeeds.
    """
    path = stage_to_tempfile(src, filename=filename, max_bytes=int(cfg.UPLOAD_MAX_BYTES))
    try:
        return upload_file(cfg, path=path, filename=filename)
    finally:
        try:
            os.unlink(path)
        except OSError as e:
            _debug(f"Could not remove staged upload {path}: {e}")
