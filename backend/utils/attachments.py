# utils/attachments.py
"""Uploaded image storage for stock records.

Files live at ``<public_dir>/uploads/<code>/<timestampMs>-<filename>`` and are
addressed by ``<base_url>/public/uploads/<code>/<file>``. Writes are grouped
in an :class:`AttachmentBatch` so a failed database commit can take them back;
removals report failures to the caller instead of raising.
"""
import logging
import re
import shutil
import time
from pathlib import Path
from typing import Iterable, List, Optional
from urllib.parse import quote, unquote, urlparse

from fastapi import UploadFile

from config import settings

logger = logging.getLogger(__name__)

ALLOWED_PREFIX = "image/"
_UNSAFE = re.compile(r"[^A-Za-z0-9._ -]")


def safe_segment(value: str) -> str:
    """Reduce a user supplied name to a single, harmless path segment."""
    cleaned = _UNSAFE.sub("_", Path(value or "").name).strip(" .")
    return cleaned or "_"


class AttachmentBatch:
    """Files written during one request."""

    def __init__(self, manager: "AttachmentManager"):
        self.manager = manager
        self.urls: List[str] = []
        self.paths: List[Path] = []

    def rollback(self) -> List[str]:
        warnings = self.manager.remove(self.urls)
        self.urls, self.paths = [], []
        return warnings


class AttachmentManager:
    def __init__(self, public_dir, base_url: str, subdir: str = "uploads"):
        self.public_dir = Path(public_dir)
        self.upload_root = self.public_dir / subdir
        self.base_url = base_url.rstrip("/")

    def directory_for(self, code: str) -> Path:
        return self.upload_root / safe_segment(code)

    def url_for(self, path: Path) -> str:
        rel = path.relative_to(self.public_dir).as_posix()
        return f"{self.base_url}/public/{quote(rel)}"

    def path_for(self, url: str) -> Optional[Path]:
        """Map a public URL back to a file under the uploads tree, or None."""
        url_path = unquote(urlparse(url or "").path)
        marker = "/public/"
        if marker not in url_path:
            return None
        rel = url_path.split(marker, 1)[1]
        path = (self.public_dir / rel).resolve()
        root = self.upload_root.resolve()
        if root == path or root not in path.parents:
            return None
        return path

    @staticmethod
    def check(uploads: Iterable[UploadFile], limit: int) -> Optional[str]:
        """Return a reason the uploads are unacceptable, or None."""
        uploads = list(uploads)
        if len(uploads) > limit:
            return f"At most {limit} images are allowed"
        for upload in uploads:
            if not (upload.content_type or "").startswith(ALLOWED_PREFIX):
                return f"Invalid file type: {upload.filename}"
        return None

    def save(self, code: str, uploads: Iterable[UploadFile]) -> AttachmentBatch:
        """Write uploads under the per-code directory, keeping upload order."""
        uploads = list(uploads)
        batch = AttachmentBatch(self)
        directory = self.directory_for(code)
        try:
            for upload in uploads:
                directory.mkdir(parents=True, exist_ok=True)
                name = safe_segment(upload.filename)
                stamp = int(time.time() * 1000)
                target = directory / f"{stamp}-{name}"
                while target.exists():
                    stamp += 1
                    target = directory / f"{stamp}-{name}"
                with open(target, "wb") as buffer:
                    shutil.copyfileobj(upload.file, buffer)
                batch.paths.append(target)
                batch.urls.append(self.url_for(target))
        except OSError:
            batch.rollback()
            raise
        finally:
            for upload in uploads:
                upload.file.close()
        return batch

    def remove(self, urls: Iterable[str], keep: Iterable[str] = ()) -> List[str]:
        """Delete the files behind urls. Returns one warning per failure."""
        keep = set(keep)
        warnings = []
        for url in urls:
            if url in keep:
                continue
            path = self.path_for(url)
            if path is None:
                warnings.append(f"Not a managed upload: {url}")
                continue
            try:
                path.unlink()
            except FileNotFoundError:
                logger.info("Image already gone: %s", path)
            except OSError as e:
                logger.warning("Could not delete image %s: %s", path, e)
                warnings.append(f"Could not delete {url}")
        return warnings

    def directory_of(self, url: str) -> Optional[Path]:
        """The per-code directory holding the file behind url, or None."""
        path = self.path_for(url)
        if path is None or path.parent.parent != self.upload_root.resolve():
            return None
        return path.parent

    def remove_directory_of(self, url: str) -> List[str]:
        """Delete the per-code directory holding the file behind url."""
        if self.path_for(url) is None:
            return [f"Not a managed upload: {url}"]
        directory = self.directory_of(url)
        if directory is None:
            return [f"Not a per-code directory: {url}"]
        try:
            shutil.rmtree(directory)
        except FileNotFoundError:
            logger.info("Image directory already gone: %s", directory)
        except OSError as e:
            logger.warning("Could not delete image directory %s: %s", directory, e)
            return [f"Could not delete directory for {url}"]
        return []

    def prune_directory_of(self, url: str) -> bool:
        """Remove the per-code directory behind url if nothing is left in it."""
        directory = self.directory_of(url)
        if directory is None or not directory.is_dir() or any(directory.iterdir()):
            return False
        try:
            directory.rmdir()
        except OSError as e:
            logger.warning("Could not delete empty image directory %s: %s", directory, e)
            return False
        return True


def get_attachments() -> AttachmentManager:
    return AttachmentManager(settings.PUBLIC_DIR, settings.APP_URL)
