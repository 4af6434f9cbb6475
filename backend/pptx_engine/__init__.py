"""
PPTX Template Engine Module
"""
from .errors import (
    ErrorKind, TemplateEngineError, InputError, DownloadError, InvalidArchiveError,
    TemplateSlideError, UnresolvedPlaceholderError, UploadError,
)
from .package import Package
from .loader import TemplateLoader
from .analyzer import SlideInfo, StructureAnalyzer
from .classifier import SlideClassifier, SlideRole
from .data import GenerationData
from .styles import ExtractedStyles, StyleExtractor
from .transformer import ContentTransformer, ReplacementStrategy
from .replicator import SlideReplicator
from .pipeline import GenerationOptions, GenerationResult, TemplateGenerator

__all__ = [
    'ErrorKind', 'TemplateEngineError', 'InputError', 'DownloadError', 'InvalidArchiveError',
    'TemplateSlideError', 'UnresolvedPlaceholderError', 'UploadError',
    'Package', 'TemplateLoader', 'SlideInfo', 'StructureAnalyzer', 'SlideClassifier', 'SlideRole',
    'GenerationData', 'ExtractedStyles', 'StyleExtractor', 'ContentTransformer', 'ReplacementStrategy',
    'SlideReplicator', 'GenerationOptions', 'GenerationResult', 'TemplateGenerator',
]
