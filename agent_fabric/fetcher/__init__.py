"""Acquisition of resource sources: downloads, archive safety, local walks."""

from agent_fabric.fetcher.acquirer import Acquirer, default_cache_dir
from agent_fabric.fetcher.archive import (
    archive_root,
    extract_archive,
    is_unsafe_member_name,
    safe_join,
    stage_tree,
)
from agent_fabric.fetcher.download import RetryConfig, create_client, fetch_json, fetch_with_retry
from agent_fabric.fetcher.local import is_excluded, iter_source_files, read_source_files
from agent_fabric.fetcher.types import AcquireMetadata, AcquireResult, StagedFile

__all__ = [
    "Acquirer",
    "default_cache_dir",
    "archive_root",
    "extract_archive",
    "is_unsafe_member_name",
    "safe_join",
    "stage_tree",
    "RetryConfig",
    "create_client",
    "fetch_json",
    "fetch_with_retry",
    "is_excluded",
    "iter_source_files",
    "read_source_files",
    "AcquireMetadata",
    "AcquireResult",
    "StagedFile",
]
