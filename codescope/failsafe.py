"""Degraded summaries used when a scan cannot produce a full result."""

from __future__ import annotations

UNREACHABLE_SUMMARY = (
    "Unable to access this repository. Please ensure the repo exists and the GitHub "
    "connection has access."
)


def build_unreachable_summary(reason: str | None = None) -> str:
    """Summary for runs that ended at the repository existence check."""
    cleaned = _format_reason(reason)
    if cleaned:
        return f"{UNREACHABLE_SUMMARY} (Details: {cleaned}.)"
    return UNREACHABLE_SUMMARY


def build_error_summary(reason: str | None) -> str:
    """Summary for runs interrupted by an unexpected error."""
    cleaned = _format_reason(reason) or "unknown error"
    return f"Scan encountered an error: {cleaned}. Some results may be incomplete."


def _format_reason(reason: str | None) -> str | None:
    if reason is None:
        return None
    text = " ".join(str(reason).split())
    if not text:
        return None
    return text.rstrip(".")


__all__ = ["UNREACHABLE_SUMMARY", "build_error_summary", "build_unreachable_summary"]
