"""
Generation data tree
Denormalized project / workstation / module / hardware records supplied by the
report-data builder. The engine only reads it.
"""
from typing import Any, Dict, List, Optional

from pydantic import BaseModel, ConfigDict, Field


class _Record(BaseModel):
    model_config = ConfigDict(extra='allow', frozen=True)


class RevisionEntry(_Record):
    version: str = ''
    date: str = ''
    author: str = ''
    content: str = ''


class Project(_Record):
    id: str = ''
    code: str = ''
    name: str = ''
    customer: str = ''
    date: Optional[str] = None
    responsible: Optional[str] = None
    vision_responsible: Optional[str] = None
    sales_responsible: Optional[str] = None
    product_process: Optional[str] = None
    quality_strategy: Optional[str] = None
    environment: Optional[List[str]] = None
    notes: Optional[str] = None
    revision_history: List[RevisionEntry] = Field(default_factory=list)


class Dimensions(_Record):
    length: float = 0
    width: float = 0
    height: float = 0


class AcceptanceCriteria(_Record):
    accuracy: Optional[str] = None
    cycle_time: Optional[str] = None
    compatible_sizes: Optional[str] = None


class HardwareRef(_Record):
    brand: str = ''
    model: str = ''
    image_url: Optional[str] = None


class Layout(_Record):
    front_view_image_url: Optional[str] = None
    side_view_image_url: Optional[str] = None
    top_view_image_url: Optional[str] = None
    width: Optional[float] = None
    height: Optional[float] = None
    depth: Optional[float] = None
    camera_count: Optional[int] = None
    conveyor_type: Optional[str] = None
    mechanisms: Optional[List[str]] = None
    selected_cameras: Optional[List[HardwareRef]] = None
    selected_lenses: Optional[List[HardwareRef]] = None
    selected_lights: Optional[List[HardwareRef]] = None
    selected_controller: Optional[HardwareRef] = None


class ProductAnnotation(_Record):
    snapshot_url: str = ''
    annotations_json: List[Dict[str, Any]] = Field(default_factory=list)
    remark: Optional[str] = None


class PreviewImage(_Record):
    url: str
    name: Optional[str] = None


class ProductModel(_Record):
    name: str = ''
    spec: str = ''


class DetectionRequirement(_Record):
    content: str = ''
    highlight: Optional[str] = None


class ProductAsset(_Record):
    preview_images: Optional[List[PreviewImage]] = None
    detection_method: Optional[str] = None
    product_models: Optional[List[ProductModel]] = None
    detection_requirements: Optional[List[DetectionRequirement]] = None


class Module(_Record):
    id: str = ''
    name: str = ''
    type: str = ''
    description: Optional[str] = None
    workstation_id: str = ''
    trigger_type: Optional[str] = None
    roi_strategy: Optional[str] = None
    processing_time_limit: Optional[float] = None
    schematic_image_url: Optional[str] = None


class Workstation(_Record):
    id: str = ''
    code: str = ''
    name: str = ''
    type: str = ''
    cycle_time: Optional[float] = None
    product_dimensions: Optional[Dimensions] = None
    enclosed: Optional[bool] = None
    process_stage: Optional[str] = None
    observation_target: Optional[str] = None
    motion_description: Optional[str] = None
    risk_notes: Optional[str] = None
    shot_count: Optional[int] = None
    acceptance_criteria: Optional[AcceptanceCriteria] = None
    modules: Optional[List[Module]] = None
    layout: Optional[Layout] = None
    product_annotation: Optional[ProductAnnotation] = None
    product_asset: Optional[ProductAsset] = None


class Camera(_Record):
    brand: str = ''
    model: str = ''
    resolution: str = ''
    sensor_size: str = ''
    interface: str = ''
    image_url: Optional[str] = None


class Lens(_Record):
    brand: str = ''
    model: str = ''
    focal_length: str = ''
    mount: str = ''
    image_url: Optional[str] = None


class Light(_Record):
    brand: str = ''
    model: str = ''
    type: str = ''
    color: str = ''
    image_url: Optional[str] = None


class Controller(_Record):
    brand: str = ''
    model: str = ''
    cpu: str = ''
    memory: str = ''
    image_url: Optional[str] = None


class Hardware(_Record):
    cameras: List[Camera] = Field(default_factory=list)
    lenses: List[Lens] = Field(default_factory=list)
    lights: List[Light] = Field(default_factory=list)
    controllers: List[Controller] = Field(default_factory=list)

    def collection(self, name: str) -> List[_Record]:
        """Items of a hardware sub-collection by name (cameras, lenses, lights, controllers)."""
        if name not in HARDWARE_COLLECTIONS:
            return []
        return list(getattr(self, name) or [])

    @property
    def total(self) -> int:
        return sum(len(self.collection(name)) for name in HARDWARE_COLLECTIONS)


HARDWARE_COLLECTIONS = ('cameras', 'lenses', 'lights', 'controllers')


class GenerationData(_Record):
    project: Project
    workstations: List[Workstation] = Field(default_factory=list)
    modules: List[Module] = Field(default_factory=list)
    hardware: Hardware = Field(default_factory=Hardware)
    language: str = 'zh'

    def modules_for(self, workstation: Workstation) -> List[Module]:
        """Nested modules of a workstation, or the flat modules that point at it."""
        if workstation.modules is not None:
            return list(workstation.modules)
        return [m for m in self.modules if m.workstation_id and m.workstation_id == workstation.id]

    def all_modules(self) -> List[Module]:
        if self.modules:
            return list(self.modules)
        collected: List[Module] = []
        for ws in self.workstations:
            collected.extend(ws.modules or [])
        return collected
