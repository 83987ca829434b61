# SPDX-License-Identifier: LGPL-2.1-only
# Copyright (c) 2026 Akshat Kotpalliwar (alias IntegerAlex)

"""
resticops - Backup orchestration for a single host on top of restic.

Sequences restic calls through an explicit lifecycle (prepare, backup,
verify, prune, final verify) and never prunes unless a backup and its
verification succeeded in the same run. Package name: resticops.
"""

__version__ = "0.1.0"

# Configuration creation (user-facing API)
from resticops.builder import create_config
from resticops.config import ResticOpsConfig, RetentionPolicy

# Environment-based configuration
from resticops.env import create_config_from_env, read_environment

# Core lifecycle
from resticops.core import (
    LifecycleResult,
    LifecycleState,
    Orchestrator,
    run_lifecycle,
)

from resticops.locator import RepositoryTarget, TargetKind, resolve_target
from resticops.policy import ForgetSpec, compute_forget_args

__all__ = [
    # Version
    "__version__",
    # Configuration
    "create_config",
    "create_config_from_env",
    "read_environment",
    "ResticOpsConfig",
    "RetentionPolicy",
    # Locator / policy
    "RepositoryTarget",
    "TargetKind",
    "resolve_target",
    "ForgetSpec",
    "compute_forget_args",
    # Core orchestration
    "LifecycleResult",
    "LifecycleState",
    "Orchestrator",
    "run_lifecycle",
]
