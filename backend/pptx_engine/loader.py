"""
Package Loader
Resolves a template reference (URL, local path or stored template id),
downloads it and opens it as a Package
"""
import os
import re
from dataclasses import dataclass
from typing import Optional, Tuple

import requests

from config import LOG_LEVEL, LOG_FILE, HTTP_TIMEOUT
from utils.logger import get_logger
from utils.template_store import TemplateStore
from .errors import DownloadError, InputError, InvalidArchiveError
from .package import Package, PRESENTATION_PATH

_URL_RE = re.compile(r'^https?://', re.IGNORECASE)


@dataclass
class LoadedTemplate:
    package: Package
    name: str
    source: str
    size: int
    part_count: int


class TemplateLoader:
    def __init__(self, session: Optional[requests.Session] = None,
                 template_store: Optional[TemplateStore] = None,
                 timeout: float = HTTP_TIMEOUT,
                 allow_local_paths: bool = True):
        """
        Args:
            allow_local_paths: accept filesystem paths and file:// references from the caller.
                Paths recorded in the template store are read either way.
        """
        self.logger = get_logger(__name__, LOG_LEVEL, LOG_FILE)
        self.session = session or requests.Session()
        self.template_store = template_store
        self.timeout = timeout
        self.allow_local_paths = allow_local_paths

    def resolve(self, template_ref: str) -> Tuple[str, str]:
        """Return (source url or path, display name) for a template reference."""
        source, name, _ = self._resolve(template_ref)
        return source, name

    def _resolve(self, template_ref: str) -> Tuple[str, str, bool]:
        """(source, name, whether the source came from the template store)"""
        if not template_ref or not str(template_ref).strip():
            raise InputError("templateId or templateUrl is required")
        value = str(template_ref).strip()

        if _URL_RE.match(value):
            return value, value.rstrip('/').split('/')[-1] or 'Custom Template', False
        if self.allow_local_paths:
            if value.startswith('file://'):
                value = value[len('file://'):]
            if os.path.isfile(value):
                return value, os.path.basename(value), False
        elif value.startswith('file://'):
            raise InputError("Local template files are not accepted here; use templateId or an http(s) URL")

        store = self.template_store or TemplateStore()
        record = store.get(value)
        if not record:
            raise InputError(f"Template not found or has no file: {value}")
        return record.file_url, record.name, True

    def fetch_bytes(self, source: str, allow_local: Optional[bool] = None) -> bytes:
        """Download (or read) the template bytes. Raises DownloadError."""
        if allow_local is None:
            allow_local = self.allow_local_paths
        if not _URL_RE.match(source):
            if not allow_local:
                raise InputError(f"Template source must be an http(s) URL: {source}")
            path = source[len('file://'):] if source.startswith('file://') else source
            try:
                with open(path, 'rb') as f:
                    return f.read()
            except OSError as e:
                raise DownloadError(f"Failed to read template file {path}: {e}") from e

        try:
            response = self.session.get(source, timeout=self.timeout)
        except requests.RequestException as e:
            raise DownloadError(f"Failed to download template: {e}") from e
        if not 200 <= response.status_code < 300:
            reason = getattr(response, 'reason', '') or ''
            raise DownloadError(f"Failed to download template: HTTP {response.status_code} {reason}".strip())
        return response.content

    def open_bytes(self, data: bytes) -> Package:
        package = Package.from_bytes(data)
        if PRESENTATION_PATH not in package:
            raise InvalidArchiveError("Archive has no ppt/presentation.xml; not a presentation")
        return package

    def load(self, template_ref: str) -> LoadedTemplate:
        source, name, from_store = self._resolve(template_ref)
        self.logger.info(f"Loading template: {name}")
        data = self.fetch_bytes(source, allow_local=self.allow_local_paths or from_store)
        self.logger.info(f"Template loaded, size: {len(data)} bytes")
        package = self.open_bytes(data)
        return LoadedTemplate(
            package=package,
            name=name,
            source=source,
            size=len(data),
            part_count=package.part_count,
        )
