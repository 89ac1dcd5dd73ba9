"""Knowledge module initialization."""
from .loader import (
    PACKAGED_KNOWLEDGE_DIR,
    TRUNCATION_MARKER,
    knowledge_dirs,
    find_knowledge_files,
    packaged_knowledge_file,
    load_knowledge,
)

__all__ = [
    "PACKAGED_KNOWLEDGE_DIR",
    "TRUNCATION_MARKER",
    "knowledge_dirs",
    "find_knowledge_files",
    "packaged_knowledge_file",
    "load_knowledge",
]
