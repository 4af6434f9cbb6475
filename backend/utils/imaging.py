"""
Imaging Calculations
Camera resolution / field-of-view parsing and the derived imaging parameters
used in the proposal tables
"""
import math
import re
from dataclasses import dataclass
from typing import Dict, Optional, Tuple

_WIDTH_HEIGHT_RE = re.compile(r'(\d+)\s*[x×*]\s*(\d+)', re.IGNORECASE)
_MEGAPIXEL_RE = re.compile(r'(\d+(?:\.\d+)?)\s*(万像素|MP|M|百万)', re.IGNORECASE)
_PIXEL_COUNT_RE = re.compile(r'^(\d{6,})$')
_FOV_PAIR_RE = re.compile(r'(\d+(?:\.\d+)?)\s*[x×*]\s*(\d+(?:\.\d+)?)', re.IGNORECASE)
_FOV_SINGLE_RE = re.compile(r'^(\d+(?:\.\d+)?)$')

# Sensor format -> active width in mm
SENSOR_WIDTHS_MM: Dict[str, float] = {
    '1/4': 3.6,
    '1/3': 4.8,
    '1/2.5': 5.76,
    '1/2.3': 6.17,
    '1/2': 6.4,
    '1/1.8': 7.18,
    '2/3': 8.8,
    '1': 12.8,
    '1.1': 14.0,
    '4/3': 17.3,
    'APS-C': 23.6,
    '35mm': 36,
}

# Measurement needs 3x oversampling of the target accuracy
OVERSAMPLING_FACTOR = 3


def _round_half_up(value: float) -> int:
    return int(math.floor(value + 0.5))


def _four_three_pair(total_pixels: float) -> Tuple[int, int]:
    width = _round_half_up(math.sqrt(total_pixels * 4 / 3))
    height = _round_half_up(width * 3 / 4)
    return width, height


def parse_resolution(resolution: Optional[str]) -> Optional[Tuple[int, int]]:
    """
    Parse a camera resolution string into (width, height) pixels.

    Accepts "2448x2048", "2448*2048", "5MP", "500万像素" (5 MP) or a bare pixel
    count; megapixel and pixel-count forms are expanded to a 4:3 pair.
    """
    if not resolution:
        return None
    text = str(resolution).strip()

    match = _WIDTH_HEIGHT_RE.search(text)
    if match:
        return int(match.group(1)), int(match.group(2))

    match = _MEGAPIXEL_RE.search(text)
    if match:
        amount = float(match.group(1))
        # 万像素 counts ten-thousands of pixels
        pixels = amount * 10000 if match.group(2) == '万像素' else amount * 1000000
        return _four_three_pair(pixels)

    match = _PIXEL_COUNT_RE.match(text)
    if match:
        return _four_three_pair(int(match.group(1)))
    return None


def parse_fov(fov: Optional[str]) -> Optional[Tuple[float, float]]:
    """Parse a field of view such as "100x80mm" into (width, height) in mm. A single value is square."""
    if not fov:
        return None
    cleaned = re.sub(r'mm|毫米', '', str(fov), flags=re.IGNORECASE).strip()

    match = _FOV_PAIR_RE.search(cleaned)
    if match:
        return float(match.group(1)), float(match.group(2))
    match = _FOV_SINGLE_RE.match(cleaned)
    if match:
        size = float(match.group(1))
        return size, size
    return None


def calculate_resolution_per_pixel(fov: Optional[Tuple[float, float]],
                                   resolution: Optional[Tuple[int, int]]) -> Optional[float]:
    """mm per pixel; the coarser of the two axes"""
    if not fov or not resolution:
        return None
    if resolution[0] <= 0 or resolution[1] <= 0:
        return None
    return max(fov[0] / resolution[0], fov[1] / resolution[1])


def format_resolution_per_pixel(value: Optional[float]) -> str:
    if value is None or math.isnan(value):
        return ''
    if value < 0.001:
        return f"{value:.6f}"
    if value < 0.01:
        return f"{value:.5f}"
    if value < 0.1:
        return f"{value:.4f}"
    return f"{value:.3f}"


def calculate_required_resolution(fov: Tuple[float, float], target_resolution: float) -> Dict[str, float]:
    """Smallest sensor resolution reaching ``target_resolution`` mm/px over ``fov``."""
    width = math.ceil(fov[0] / target_resolution)
    height = math.ceil(fov[1] / target_resolution)
    return {'width': width, 'height': height, 'megapixels': width * height / 1000000}


def calculate_working_distance(sensor_size: str, focal_length: float, fov_width: float) -> Optional[int]:
    """Thin-lens approximation: WD = f * FOV / sensor width."""
    sensor_width = SENSOR_WIDTHS_MM.get(sensor_size)
    if not sensor_width or not focal_length or focal_length <= 0:
        return None
    return _round_half_up(focal_length * (fov_width / sensor_width))


@dataclass
class ImagingParams:
    resolution_per_pixel: str
    resolution_per_pixel_value: Optional[float]
    fov: Optional[Tuple[float, float]]
    camera: Optional[Tuple[int, int]]
    working_distance: Optional[int]
    meets_accuracy: Optional[bool]
    recommended_camera: Optional[str]


def calculate_imaging_params(camera_resolution: str = '', fov: str = '',
                             target_accuracy: Optional[float] = None,
                             sensor_size: Optional[str] = None,
                             focal_length: Optional[float] = None) -> ImagingParams:
    camera = parse_resolution(camera_resolution)
    fov_parsed = parse_fov(fov)
    per_pixel = calculate_resolution_per_pixel(fov_parsed, camera)

    meets_accuracy = None
    recommended = None
    if target_accuracy and per_pixel is not None:
        required = target_accuracy / OVERSAMPLING_FACTOR
        meets_accuracy = per_pixel <= required
        if not meets_accuracy and fov_parsed:
            needed = calculate_required_resolution(fov_parsed, required)
            recommended = f"{needed['width']}x{needed['height']} ({needed['megapixels']:.1f}MP)"

    working_distance = None
    if sensor_size and focal_length and fov_parsed:
        working_distance = calculate_working_distance(sensor_size, focal_length, fov_parsed[0])

    return ImagingParams(
        resolution_per_pixel=format_resolution_per_pixel(per_pixel),
        resolution_per_pixel_value=per_pixel,
        fov=fov_parsed,
        camera=camera,
        working_distance=working_distance,
        meets_accuracy=meets_accuracy,
        recommended_camera=recommended,
    )
