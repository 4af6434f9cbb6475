"""
Template Store
Resolves stored template ids to downloadable files and persists generated decks
"""
import json
import os
import re
import time
from dataclasses import dataclass
from typing import Dict, Optional

from utils.logger import get_logger
from config import LOG_LEVEL, LOG_FILE, TEMPLATE_REGISTRY_FILE, OUTPUT_DIR


@dataclass(frozen=True)
class TemplateRecord:
    id: str
    name: str
    file_url: str


class TemplateStore:
    def __init__(self, registry_file: str = TEMPLATE_REGISTRY_FILE):
        self.registry_file = registry_file
        self.templates: Dict[str, TemplateRecord] = {}
        self.logger = get_logger(__name__, LOG_LEVEL, LOG_FILE)
        self.load_registry()

    def load_registry(self) -> bool:
        """Load template records from the registry JSON file"""
        if not os.path.exists(self.registry_file):
            self.logger.debug(f"Template registry not found: {self.registry_file}")
            return False
        try:
            with open(self.registry_file, 'r', encoding='utf-8') as f:
                data = json.load(f)
        except (OSError, json.JSONDecodeError) as e:
            self.logger.error(f"Error loading template registry {self.registry_file}: {e}")
            return False

        base_dir = os.path.dirname(os.path.abspath(self.registry_file))
        for template_id, entry in (data.get('templates') or {}).items():
            if not isinstance(entry, dict) or not entry.get('file_url'):
                self.logger.warning(f"Skipping template {template_id}: no file_url")
                continue
            file_url = entry['file_url']
            # Relative file paths are relative to the registry
            if not re.match(r'^[a-z]+://', file_url) and not os.path.isabs(file_url):
                file_url = os.path.join(base_dir, file_url)
            self.templates[str(template_id)] = TemplateRecord(
                id=str(template_id),
                name=entry.get('name') or str(template_id),
                file_url=file_url,
            )
        self.logger.info(f"Loaded {len(self.templates)} templates from registry")
        return True

    def get(self, template_id: str) -> Optional[TemplateRecord]:
        return self.templates.get(str(template_id))

    def register(self, template_id: str, name: str, file_url: str) -> TemplateRecord:
        record = TemplateRecord(id=str(template_id), name=name, file_url=file_url)
        self.templates[record.id] = record
        return record


def sanitize_file_name(name: Optional[str], default: str = 'output.pptx') -> str:
    """Reduce a requested output name to [A-Za-z0-9_ .-] and collapse separators."""
    cleaned = re.sub(r'[^\w\s.-]', '_', name or '', flags=re.ASCII)
    cleaned = re.sub(r'\s+', '_', cleaned)
    cleaned = re.sub(r'_+', '_', cleaned)
    cleaned = cleaned.strip('_')
    return cleaned or default


class OutputStore:
    def __init__(self, output_dir: str = OUTPUT_DIR):
        self.output_dir = output_dir
        self.logger = get_logger(__name__, LOG_LEVEL, LOG_FILE)

    def save(self, content: bytes, file_name: str, owner: str = 'anonymous') -> str:
        """Write a generated deck to generated/<owner>/<timestamp>_<name>. Raises UploadError."""
        from pptx_engine.errors import UploadError

        safe_owner = sanitize_file_name(owner, default='anonymous')
        safe_name = sanitize_file_name(file_name)
        directory = os.path.join(self.output_dir, 'generated', safe_owner)
        path = os.path.join(directory, f"{int(time.time() * 1000)}_{safe_name}")
        try:
            os.makedirs(directory, exist_ok=True)
            with open(path, 'wb') as f:
                f.write(content)
        except OSError as e:
            raise UploadError(f"Failed to store generated file: {e}") from e
        self.logger.info(f"Stored generated file: {path} ({len(content)} bytes)")
        return path
