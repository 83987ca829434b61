# SPDX-License-Identifier: LGPL-2.1-only
# Copyright (c) 2026 Akshat Kotpalliwar (alias IntegerAlex)

"""
File Selection - Include / exclude lists for restic backup.

The lists are read once per run and frozen; restic itself still receives
the list files (--files-from / --exclude-file), the parsed patterns are
kept for validation and reporting.
"""

from dataclasses import dataclass
from pathlib import Path
from typing import List, Tuple

import aiofiles
import structlog

from resticops.errors import explain_empty_file_list, explain_missing_file_list
from resticops.exceptions import ConfigurationError

logger = structlog.get_logger()


@dataclass(frozen=True)
class FileSelection:
    """What to back up, as ordered path patterns."""

    include_paths: Tuple[str, ...]
    exclude_paths: Tuple[str, ...]
    files_from: Path
    exclude_file: Path | None = None


async def read_patterns(path: Path) -> Tuple[str, ...]:
    """
    Read a restic pattern list.

    Blank lines and lines starting with '#' are skipped; order is kept.
    """
    patterns: List[str] = []
    async with aiofiles.open(path, "r", encoding="utf-8") as f:
        async for line in f:
            stripped = line.strip()
            if not stripped or stripped.startswith("#"):
                continue
            patterns.append(stripped)
    return tuple(patterns)


async def load_file_selection(
    files_from: Path,
    exclude_file: Path | None = None,
) -> FileSelection:
    """
    Load the include and exclude lists.

    Args:
        files_from: Include list (required, must name at least one path)
        exclude_file: Exclude list (optional; skipped with a warning if absent)

    Returns:
        Frozen FileSelection

    Raises:
        ConfigurationError: If the include list is missing or empty
    """
    if not files_from.is_file():
        raise ConfigurationError(explain_missing_file_list(files_from))

    include_paths = await read_patterns(files_from)
    if not include_paths:
        raise ConfigurationError(explain_empty_file_list(files_from))

    exclude_paths: Tuple[str, ...] = ()
    if exclude_file is not None and exclude_file.is_file():
        exclude_paths = await read_patterns(exclude_file)
    elif exclude_file is not None:
        logger.warning("exclude_file_missing", path=str(exclude_file))
        exclude_file = None

    logger.debug(
        "file_selection_loaded",
        includes=len(include_paths),
        excludes=len(exclude_paths),
    )

    return FileSelection(
        include_paths=include_paths,
        exclude_paths=exclude_paths,
        files_from=files_from,
        exclude_file=exclude_file,
    )
