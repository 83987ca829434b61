# SPDX-License-Identifier: LGPL-2.1-only
# Copyright (c) 2026 Akshat Kotpalliwar (alias IntegerAlex)

"""
Backend Adapter - Typed interface to the backup engine.
"""

from resticops.backend.base import (
    Backend,
    Operation,
    RunResult,
    Snapshot,
)

from resticops.backend.restic import (
    ResticBackend,
    parse_timestamp,
)

__all__ = [
    # Interface
    "Backend",
    "Operation",
    "RunResult",
    "Snapshot",
    # restic
    "ResticBackend",
    "parse_timestamp",
]
