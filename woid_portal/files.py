# woid_portal/files.py
import logging
import mimetypes
from typing import Optional, Tuple

import requests

logger = logging.getLogger(__name__)

DEFAULT_TIMEOUT = 30


class FileFetchError(RuntimeError):
    pass


def guess_mime_type(file_name: str, file_type: Optional[str] = None) -> str:
    if file_type and "/" in file_type:
        return file_type
    guessed, _ = mimetypes.guess_type(file_name or "")
    return guessed or "application/octet-stream"


def fetch_file_bytes(url: str, timeout: int = DEFAULT_TIMEOUT) -> Tuple[bytes, Optional[str]]:
    """Downloads an attachment from file storage. Returns the content and the served content type."""
    if not url:
        raise FileFetchError("File has no download link.")
    try:
        response = requests.get(url, timeout=timeout)
        response.raise_for_status()
    except requests.exceptions.RequestException as e:
        logger.error("Error downloading %s: %s", url, e)
        raise FileFetchError(f"Could not download file. {e}") from e

    logger.info("Downloaded %d bytes from %s", len(response.content), url)
    return response.content, response.headers.get("Content-Type")
