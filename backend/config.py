"""
Configuration settings for the Vision Proposal Template Engine
"""
import os
from dotenv import load_dotenv

load_dotenv()


def _env_float(name, default):
    value = os.getenv(name)
    if value is None or value.strip() == '':
        return default
    try:
        return float(value)
    except ValueError:
        return default


def _env_int(name, default):
    value = os.getenv(name)
    if value is None or value.strip() == '':
        return default
    try:
        return int(value)
    except ValueError:
        return default


# Logging configuration
LOG_LEVEL = os.getenv('LOG_LEVEL', 'INFO')
LOG_FILE = os.getenv('LOG_FILE') or None  # Console only unless a path is given

# Template storage
TEMPLATE_REGISTRY_FILE = os.getenv('TEMPLATE_REGISTRY_FILE', 'templates/registry.json')
DEFAULT_TEMPLATE_ID = os.getenv('DEFAULT_TEMPLATE_ID')
OUTPUT_DIR = os.getenv('OUTPUT_DIR', 'output')

# Background jobs; finished jobs and their generated decks are dropped after this many seconds
JOB_TTL_SECONDS = _env_float('JOB_TTL_SECONDS', 3600.0)

# Network
HTTP_TIMEOUT = _env_float('HTTP_TIMEOUT', 30.0)  # template download, seconds
IMAGE_FETCH_TIMEOUT = _env_float('IMAGE_FETCH_TIMEOUT', 20.0)  # per image marker, seconds

# Output container
PPTX_MIME_TYPE = 'application/vnd.openxmlformats-officedocument.presentationml.presentation'
DEFAULT_OUTPUT_FILE_NAME = 'generated.pptx'

# Structure analysis heuristics
FORMAT_SCAN_WINDOW = _env_int('FORMAT_SCAN_WINDOW', 500)  # characters scanned backward from a text run
DEFAULT_FONT_SIZE = 14.0  # points, used when no size declaration is found

# Generation report
REPLACEMENT_LOG_LIMIT = _env_int('REPLACEMENT_LOG_LIMIT', 10)

# Geometry (OOXML native length unit)
EMU_PER_INCH = 914400

# Logo detection on the first slide master.
# A picture is a logo candidate when both sides are below LOGO_MAX_SIZE_INCHES
# and its center lies outside the central box that leaves LOGO_CONTENT_MARGIN
# (fraction of the slide size) free on every edge.
LOGO_MAX_SIZE_INCHES = _env_float('LOGO_MAX_SIZE_INCHES', 3.0)
LOGO_CONTENT_MARGIN = _env_float('LOGO_CONTENT_MARGIN', 0.2)

# Frame used for image markers whose shape carries no explicit geometry (EMU)
DEFAULT_IMAGE_FRAME = {
    'x': 914400,
    'y': 1371600,
    'cx': 5486400,
    'cy': 4114800,
}

# Company name written by the cover slide heuristics, per deck language
COMPANY_NAMES = {
    'zh': os.getenv('COMPANY_NAME_ZH', '苏州德星云智能装备有限公司'),
    'en': os.getenv('COMPANY_NAME_EN', 'SuZhou DXY Intelligent Solution Co.,Ltd'),
}
