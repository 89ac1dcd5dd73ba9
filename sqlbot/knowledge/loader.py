"""
Markdown knowledge files.

Knowledge files describe a database's business meaning (what a column
really means, which join path answers which question). They are plain
markdown and are injected into the SQL-generation prompt verbatim.
"""
import logging
from pathlib import Path
from typing import List, Optional

logger = logging.getLogger(__name__)

PACKAGED_KNOWLEDGE_DIR = Path(__file__).parent / "files"

# profile name (lowercase) -> packaged file used when no local file exists
PACKAGED_KNOWLEDGE = {
    "sakila": "sakila.md",
}

TRUNCATION_MARKER = "\n\n[... knowledge truncated ...]"


def knowledge_dirs(profile: str, base_dir: Optional[Path] = None) -> List[Path]:
    """Directories searched for ``*.md`` knowledge files, in load order."""
    base_dir = Path(base_dir) if base_dir else Path.cwd()
    return [
        base_dir / "profiles" / profile / "agents",
        base_dir / ".sqlbot" / "profiles" / profile / "agents",
        base_dir / ".sqlbot" / "agents",
    ]


def find_knowledge_files(profile: str, base_dir: Optional[Path] = None) -> List[Path]:
    """All knowledge files for a profile (sorted per directory, no duplicates)."""
    files: List[Path] = []
    seen = set()
    for directory in knowledge_dirs(profile, base_dir):
        if not directory.is_dir():
            continue
        for path in sorted(directory.glob("*.md")):
            key = path.resolve()
            if key in seen:
                continue
            seen.add(key)
            files.append(path)
    return files


def packaged_knowledge_file(profile: str) -> Optional[Path]:
    name = PACKAGED_KNOWLEDGE.get(profile.lower())
    return PACKAGED_KNOWLEDGE_DIR / name if name else None


def load_knowledge(profile: str, base_dir: Optional[Path] = None, max_chars: Optional[int] = None) -> str:
    """
    Load and concatenate knowledge files for a profile.

    Each file is introduced by a ``## <file name>`` header. When no local
    file exists, the packaged file for the profile is used (if any).

    Args:
        profile: Profile name
        base_dir: Working directory (defaults to cwd)
        max_chars: Truncate the combined text to this many characters (0 disables knowledge)

    Returns:
        Combined markdown, or "" if nothing was found
    """
    files = find_knowledge_files(profile, base_dir)
    if not files:
        packaged = packaged_knowledge_file(profile)
        if packaged is not None and packaged.is_file():
            logger.debug("Using packaged knowledge file %s", packaged)
            files = [packaged]

    sections = []
    for path in files:
        try:
            text = path.read_text(encoding="utf-8").strip()
        except OSError as e:
            logger.warning("Skipping unreadable knowledge file %s: %s", path, e)
            continue
        if text:
            sections.append(f"## {path.name}\n\n{text}")

    combined = "\n\n".join(sections)
    if max_chars is not None and len(combined) > max_chars:
        if max_chars == 0:
            return ""
        combined = combined[:max_chars].rstrip() + TRUNCATION_MARKER
    logger.info("Loaded %d knowledge file(s) for profile %s (%d chars)", len(sections), profile, len(combined))
    return combined
