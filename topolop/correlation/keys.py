"""Correlation keys."""

import hashlib

from ..constants import KEY_HEX_LENGTH
from ..models.issue import Issue


def location_key(issue: Issue) -> str:
    """MD5 of ``canonicalPath|line|analysisType|toolName``, truncated.

    A missing line is encoded as 0.
    """
    raw = "|".join([
        issue.canonical_path,
        str(issue.line or 0),
        issue.analysis_type.value,
        issue.tool_name,
    ])
    return hashlib.md5(raw.encode("utf-8")).hexdigest()[:KEY_HEX_LENGTH]


def group_id(canonical_path: str, member_ids: list[str]) -> str:
    raw = canonical_path + "|" + ",".join(sorted(member_ids))
    return hashlib.sha256(raw.encode("utf-8")).hexdigest()[:KEY_HEX_LENGTH]


def group_key(canonical_path: str, patterns: list[str], lines: list[int]) -> str:
    """Human-readable group key: path plus patterns, or path plus line span."""
    if patterns:
        return f"{canonical_path}|{','.join(sorted(patterns))}"
    if lines:
        return f"{canonical_path}|L{min(lines)}-{max(lines)}"
    return canonical_path
