"""
Importers for markdown notes and YAML profiles.
"""

from pathlib import Path
from typing import Any

import aiofiles
import structlog
import yaml

from .brain import Brain
from .config import Settings
from .contexts.notes import NoteMessaging
from .contexts.profiles import EDITABLE_FIELDS, ProfileMessaging
from .utils import HEADING_PATTERN, parse_frontmatter

logger = structlog.get_logger(__name__)

# Alternate key spellings accepted in profile YAML
PROFILE_KEY_ALIASES = {
    "fullName": "full_name",
    "name": "full_name",
    "occupation": "headline",
    "city": "location",
}


async def _read_text(path: Path) -> str:
    async with aiofiles.open(path, encoding="utf-8") as f:
        return await f.read()


def _normalize_tags(raw: Any) -> list[str]:
    if not raw:
        return []
    if isinstance(raw, str):
        return [t.strip().lstrip("#") for t in raw.split(",") if t.strip()]
    if isinstance(raw, list):
        return [str(t).strip().lstrip("#") for t in raw if str(t).strip()]
    return []


def note_title(frontmatter: dict, body: str, path: Path) -> str:
    """Frontmatter title, else the first level-one heading, else the file name."""
    if frontmatter.get("title"):
        return str(frontmatter["title"]).strip()
    match = HEADING_PATTERN.search(body)
    if match:
        return match.group(1).strip()
    return path.stem


async def import_markdown_directory(path: Path, notes: NoteMessaging) -> dict[str, int]:
    """Import every ``*.md`` file under ``path`` as a note.

    Each file's relative path is its source id, so importing the same
    directory again updates notes instead of duplicating them.

    Returns:
        Counts of created, updated and failed files
    """
    counts = {"created": 0, "updated": 0, "failed": 0}
    path = Path(path)
    if not path.is_dir():
        logger.warning("notes_import_path_missing", path=str(path))
        return counts

    for note_file in sorted(path.rglob("*.md")):
        rel_path = note_file.relative_to(path)
        # Skip hidden folders
        if any(part.startswith(".") for part in rel_path.parts):
            continue

        try:
            content = await _read_text(note_file)
            frontmatter, body = parse_frontmatter(content)
            _, created = await notes.upsert_note(
                source_id=f"markdown:{rel_path.as_posix()}",
                title=note_title(frontmatter, body, note_file),
                content=body.strip(),
                tags=_normalize_tags(frontmatter.get("tags")),
            )
        except (OSError, UnicodeDecodeError, ValueError) as e:
            logger.warning("note_import_failed", file=str(note_file), error=str(e))
            counts["failed"] += 1
            continue

        counts["created" if created else "updated"] += 1

    logger.info("notes_imported", path=str(path), **counts)
    return counts


async def load_profile_yaml(path: Path, profile: ProfileMessaging) -> list[str]:
    """Load a YAML profile and apply it. Returns the fields that changed."""
    data = yaml.safe_load(await _read_text(Path(path))) or {}
    if not isinstance(data, dict):
        raise ValueError(f"Profile file must contain a mapping: {path}")

    fields: dict[str, Any] = {}
    for key, value in data.items():
        name = PROFILE_KEY_ALIASES.get(key, key)
        if name not in EDITABLE_FIELDS:
            logger.debug("profile_key_ignored", key=key)
            continue
        if name in ("skills", "interests"):
            value = _normalize_tags(value)
        elif value is None:
            value = ""
        else:
            value = str(value).strip()
        fields[name] = value

    _, changed = await profile.update_profile(**fields)
    logger.info("profile_loaded", path=str(path), changed=changed)
    return changed


async def load_startup_data(brain: Brain, settings: Settings) -> None:
    """Run the imports configured in settings. Failures are logged, never fatal."""
    if settings.notes_import_path:
        await import_markdown_directory(settings.notes_import_path, brain.notes)

    if settings.profile_path:
        try:
            await load_profile_yaml(settings.profile_path, brain.profile)
        except (OSError, ValueError, yaml.YAMLError) as e:
            logger.error("profile_load_failed", path=str(settings.profile_path), error=str(e))
