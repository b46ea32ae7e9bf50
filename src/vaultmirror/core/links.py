"""Cross-reference resolution: link map, link-map signature and id aliases."""

import hashlib
from collections.abc import Iterable

from vaultmirror.core.registry import create_stable_note_id
from vaultmirror.core.types import RegistryEntry, RemoteFile


def build_link_map(files: Iterable[RemoteFile]) -> dict[str, str]:
    """Map lower-cased base file names to stable note ids."""
    return {
        file.base_name.lower(): create_stable_note_id(file.remote_id)
        for file in files
    }


def create_link_map_signature(files: Iterable[RemoteFile]) -> str:
    """
    Content-addressed signature of the link map.

    Two listings get the same signature exactly when they contain the same
    remote ids under the same base names.
    """
    pairs = sorted(f"{file.remote_id}:{file.base_name.lower()}" for file in files)
    return hashlib.sha256("|".join(pairs).encode("utf-8")).hexdigest()


def link_map_changed(previous: str | None, current: str) -> bool:
    """A vault that never recorded a signature counts as changed."""
    return previous != current


def build_alias_map(entries: Iterable[RegistryEntry]) -> dict[str, str]:
    """
    Map every stable and legacy id to the current stable id.

    Soft-deleted rows stay in the map so old links still resolve to the
    note's permanent identity.
    """
    aliases: dict[str, str] = {}
    live_legacy: dict[str, str] = {}
    for entry in entries:
        aliases[entry.stable_id] = entry.stable_id
        if not entry.legacy_id:
            continue
        if entry.deleted_at is None:
            live_legacy[entry.legacy_id] = entry.stable_id
        else:
            aliases.setdefault(entry.legacy_id, entry.stable_id)
    # Live notes win over deleted ones for a shared legacy id
    aliases.update(live_legacy)
    return aliases


def resolve_alias(aliases: dict[str, str], note_id: str | None) -> str | None:
    """Resolve a stable or legacy id; unknown ids pass through unchanged."""
    if not note_id:
        return None
    return aliases.get(note_id, note_id)
