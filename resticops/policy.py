# SPDX-License-Identifier: LGPL-2.1-only
# Copyright (c) 2026 Akshat Kotpalliwar (alias IntegerAlex)

"""
Policy Engine - Turn a RetentionPolicy into a forget/prune specification.

Pure functions only: no I/O, no restic calls. forget --prune deletes data
irreversibly, so a policy that keeps nothing is refused here rather than
passed through.
"""

from dataclasses import dataclass
from typing import List

from resticops.config import RetentionPolicy
from resticops.errors import explain_degenerate_policy
from resticops.exceptions import PolicyError


@dataclass(frozen=True)
class ForgetSpec:
    """Structured arguments for `restic forget`."""

    keep_daily: int
    keep_weekly: int
    keep_monthly: int
    keep_yearly: int
    prune: bool = True

    def to_args(self) -> List[str]:
        """
        Render as restic flags.

        Zero counts are omitted (restic treats them as unset anyway).
        """
        args: List[str] = []
        for flag, count in (
            ("--keep-daily", self.keep_daily),
            ("--keep-weekly", self.keep_weekly),
            ("--keep-monthly", self.keep_monthly),
            ("--keep-yearly", self.keep_yearly),
        ):
            if count > 0:
                args.extend([flag, str(count)])
        if self.prune:
            args.append("--prune")
        return args


def compute_forget_args(policy: RetentionPolicy) -> ForgetSpec:
    """
    Compute the forget/prune specification for a retention policy.

    Args:
        policy: Retention counts

    Returns:
        ForgetSpec with pruning enabled

    Raises:
        PolicyError: If every retention count is 0
    """
    if policy.is_degenerate:
        raise PolicyError(explain_degenerate_policy(), details=policy.as_dict())

    return ForgetSpec(
        keep_daily=policy.keep_daily,
        keep_weekly=policy.keep_weekly,
        keep_monthly=policy.keep_monthly,
        keep_yearly=policy.keep_yearly,
    )


def describe_policy(policy: RetentionPolicy) -> str:
    """Short human-readable form, e.g. 'daily=7 weekly=4 monthly=6 yearly=2'."""
    return (
        f"daily={policy.keep_daily} weekly={policy.keep_weekly} "
        f"monthly={policy.keep_monthly} yearly={policy.keep_yearly}"
    )
