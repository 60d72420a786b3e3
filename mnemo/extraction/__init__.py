"""mnemo.extraction -- Pluggable heuristic fact extractors."""

from mnemo.extraction.extractors import (
    Candidate,
    DecisionMarkerExtractor,
    ErrorLineExtractor,
    Extractor,
    ExtractorRegistry,
    FilePathExtractor,
    GrepFileExtractor,
    ModifiedFileExtractor,
    default_registry,
)

__all__ = [
    "Candidate",
    "Extractor",
    "ExtractorRegistry",
    "FilePathExtractor",
    "ErrorLineExtractor",
    "GrepFileExtractor",
    "ModifiedFileExtractor",
    "DecisionMarkerExtractor",
    "default_registry",
]
