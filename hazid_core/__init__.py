"""Core package for HAZID workshop tables: data model, risk matrix and row alignment."""

from .models import (
    Cause,
    Consequence,
    Hazard,
    LikelihoodLevel,
    Measure,
    Recommendation,
    Risk,
    RiskLevel,
    SeverityLevel,
    SEVERITY_CATEGORIES,
    clone_with_new_ids,
    seed_hazard,
)
from .risk_matrix import RiskMatrix
from .layout import (
    AlignmentGroup,
    BlockAllocation,
    ItemSpan,
    MeasureSpan,
    allocate_block,
    alignment_groups,
    block_row_count,
)
from .height_sync import MeasurableSurface, RelayoutCoalescer, SegmentKey, sync_segment_heights
from .documents import DocumentError, parse_hazard_document
from .store import DictKeyValueStore, HazardStore, ItemRef
from .export import ExportError, ExportReport, build_workbook, export_xlsx, export_xlsx_bytes
from .config import AppConfig, ExportSettings, load_config

__all__ = [
    "Cause",
    "Consequence",
    "Hazard",
    "LikelihoodLevel",
    "Measure",
    "Recommendation",
    "Risk",
    "RiskLevel",
    "SeverityLevel",
    "SEVERITY_CATEGORIES",
    "clone_with_new_ids",
    "seed_hazard",
    "RiskMatrix",
    "AlignmentGroup",
    "BlockAllocation",
    "ItemSpan",
    "MeasureSpan",
    "allocate_block",
    "alignment_groups",
    "block_row_count",
    "MeasurableSurface",
    "RelayoutCoalescer",
    "SegmentKey",
    "sync_segment_heights",
    "DocumentError",
    "parse_hazard_document",
    "DictKeyValueStore",
    "HazardStore",
    "ItemRef",
    "ExportError",
    "ExportReport",
    "build_workbook",
    "export_xlsx",
    "export_xlsx_bytes",
    "AppConfig",
    "ExportSettings",
    "load_config",
]
