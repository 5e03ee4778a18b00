"""
announcement-extract: 한국 정부 R&D 공고문 3단계 필드 추출 파이프라인
"""

__version__ = "0.1.0"
__author__ = "Announcement Extract Team"

from .schema import (
    Confidence,
    DocumentSources,
    ExtractionResult,
    FieldGroup,
    FieldResult,
    ThreeTierExtractionResult,
    Tier2Result,
    Tier3Result,
)

from .config import ThreeTierConfig, load_config
from .preprocess import MarkdownPreprocessor, compose_announcement_text
from .registry import AnnouncementField, parse_budget_to_won, parse_korean_date
from .rules import RuleExtractor, run_tier1, get_missing_fields_by_group
from .llm_client import LLMClient
from .tier2 import Tier2Extractor
from .tier3 import Tier3Extractor
from .merge import FieldMerger
from .orchestrator import ThreeTierExtractor

__all__ = [
    "Confidence",
    "DocumentSources",
    "ExtractionResult",
    "FieldGroup",
    "FieldResult",
    "ThreeTierExtractionResult",
    "Tier2Result",
    "Tier3Result",
    "ThreeTierConfig",
    "load_config",
    "MarkdownPreprocessor",
    "compose_announcement_text",
    "AnnouncementField",
    "parse_budget_to_won",
    "parse_korean_date",
    "RuleExtractor",
    "run_tier1",
    "get_missing_fields_by_group",
    "LLMClient",
    "Tier2Extractor",
    "Tier3Extractor",
    "FieldMerger",
    "ThreeTierExtractor",
]
