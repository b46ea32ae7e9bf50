"""Publish state and role-aware visibility rules for notes.

Visibility is derived only from a note's frontmatter. The predicates here
are the single place that decides whether a note may be listed, searched
or fetched; callers must not re-derive visibility on their own.
"""

from collections.abc import Mapping
from datetime import date, datetime, time, timezone
from typing import Any

from vaultmirror.core.types import Actor, PublishState, VaultRole, Visibility

_ROLE_RANKS = {
    VaultRole.VIEWER: 1,
    VaultRole.EDITOR: 2,
    VaultRole.ADMIN: 3,
    VaultRole.OWNER: 4,
}

SYNC_UPDATED_BY = "sync"


def role_rank(role: VaultRole | str | None) -> int:
    """Rank a vault role: owner=4, admin=3, editor=2, viewer=1, none/unknown=0."""
    if role is None:
        return 0
    try:
        return _ROLE_RANKS[VaultRole(role)]
    except ValueError:
        return 0


def parse_boolean(value: Any) -> bool:
    """Interpret a frontmatter flag. Only true/"true" count as set."""
    if isinstance(value, bool):
        return value
    if isinstance(value, str):
        return value.strip().lower() == "true"
    return False


def parse_date(value: Any) -> datetime | None:
    """Parse a frontmatter date into an aware UTC datetime, or None."""
    if value is None or value == "":
        return None
    if isinstance(value, datetime):
        parsed = value
    elif isinstance(value, date):
        parsed = datetime.combine(value, time.min)
    elif isinstance(value, str):
        text = value.strip()
        if text.endswith("Z"):
            text = text[:-1] + "+00:00"
        try:
            parsed = datetime.fromisoformat(text)
        except ValueError:
            return None
    else:
        return None

    if parsed.tzinfo is None:
        parsed = parsed.replace(tzinfo=timezone.utc)
    return parsed.astimezone(timezone.utc)


def _isoformat(value: datetime) -> str:
    return value.isoformat(timespec="milliseconds").replace("+00:00", "Z")


def compute_publish_state(
    frontmatter: Mapping[str, Any] | None = None,
    now: datetime | None = None,
) -> PublishState:
    """
    Derive a note's publish state from its frontmatter.

    Only draft, private, unlisted and published_at are read; every other key
    is ignored.

    Args:
        frontmatter: Parsed frontmatter mapping (None treated as empty)
        now: Reference time for scheduling (defaults to current UTC time)

    Returns:
        PublishState for the note
    """
    frontmatter = frontmatter or {}
    current = parse_date(now) if now is not None else datetime.now(timezone.utc)
    if current is None:
        current = datetime.now(timezone.utc)

    is_private = parse_boolean(frontmatter.get("private"))
    published_at = parse_date(frontmatter.get("published_at"))

    return PublishState(
        visibility=Visibility.PRIVATE if is_private else Visibility.PUBLIC,
        is_draft=parse_boolean(frontmatter.get("draft")),
        is_unlisted=parse_boolean(frontmatter.get("unlisted")),
        is_scheduled=published_at is not None and published_at > current,
        published_at=_isoformat(published_at) if published_at else None,
        unpublished_at=None,
        updated_by=SYNC_UPDATED_BY,
    )


def can_preview(actor: Actor | None, vault_role: VaultRole | str | None) -> bool:
    """Editors and above (or platform admins) may see drafts and scheduled notes."""
    if actor is not None and actor.is_platform_admin:
        return True
    return role_rank(vault_role) >= role_rank(VaultRole.EDITOR)


def can_access(
    state: PublishState | None,
    actor: Actor | None,
    vault_role: VaultRole | str | None,
) -> bool:
    """Whether the actor may open the note directly."""
    state = state or compute_publish_state({})

    if state.is_draft or state.is_scheduled:
        return can_preview(actor, vault_role)

    if state.visibility != Visibility.PUBLIC or state.is_unlisted:
        if actor is None:
            return False
        if actor.is_platform_admin:
            return True
        return role_rank(vault_role) >= role_rank(VaultRole.VIEWER)

    return True


def is_listable(
    state: PublishState | None,
    actor: Actor | None,
    vault_role: VaultRole | str | None,
) -> bool:
    """Whether the note may appear in folder trees, tag pages or search results."""
    state = state or compute_publish_state({})

    if not can_access(state, actor, vault_role):
        return False

    return not (state.is_draft or state.is_scheduled or state.is_unlisted)


def is_publicly_visible(state: PublishState | None) -> bool:
    """Actor-independent check used to detect notes that just became public."""
    state = state or compute_publish_state({})
    return (
        state.visibility == Visibility.PUBLIC
        and not state.is_draft
        and not state.is_scheduled
        and not state.is_unlisted
    )
