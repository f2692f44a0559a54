"""Option content hashes used to choose between full and incremental builds."""

import hashlib
import json
from typing import Any, Dict, List, Optional

DEFINES_HASH_KEY = "c/cpp-defines"

# Categories whose change invalidates every object file
REBUILD_HASH_KEYS = ["global", DEFINES_HASH_KEY, "c/cpp-compiler", "asm-compiler"]


def stable_hash(value: Any) -> str:
    """md5 of a canonical JSON serialization (sorted keys, compact)."""
    text = json.dumps(value, sort_keys=True, separators=(",", ":"), ensure_ascii=False)
    return hashlib.md5(text.encode("utf-8")).hexdigest()


def compute_option_hashes(defines: Optional[List[str]], options: Dict[str, Any]) -> Dict[str, str]:
    """
    Hash the define list and every structured option category.

    Args:
        defines: Macro definitions of the request
        options: Shaped option set

    Returns:
        Mapping of category name to hex digest
    """
    hashes = {}
    if isinstance(defines, list):
        hashes[DEFINES_HASH_KEY] = stable_hash(defines)
    for key, value in options.items():
        if isinstance(value, (dict, list)):
            hashes[key] = stable_hash(value)
    return hashes


def hashes_equal(key: str, old: Optional[Dict[str, str]], new: Optional[Dict[str, str]]) -> bool:
    if old is None and new is None:
        return True
    if old is not None and new is not None:
        return old.get(key) == new.get(key)
    return False


def needs_rebuild(prev_sha: Optional[Dict[str, str]], sha: Dict[str, str]) -> bool:
    """
    Decide whether option changes require a full rebuild.

    A missing previous hash table always requires one.
    """
    if prev_sha is None:
        return True
    return any(not hashes_equal(key, prev_sha, sha) for key in REBUILD_HASH_KEYS)
