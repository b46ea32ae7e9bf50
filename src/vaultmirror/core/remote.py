"""Remote file store contract and the recursive markdown lister."""

import asyncio
import logging
from collections.abc import Awaitable, Callable, Sequence
from dataclasses import dataclass, field
from typing import Protocol, TypeVar

from vaultmirror.core.types import RemoteFile

logger = logging.getLogger(__name__)

T = TypeVar("T")
R = TypeVar("R")

MARKDOWN_SUFFIX = ".md"


class RemoteStoreError(RuntimeError):
    """Retryable failure talking to the remote store (network, auth, quota)."""


class RemoteNotConfiguredError(RemoteStoreError):
    """Raised when a required remote folder reference is missing."""


class RemoteFileNotFoundError(RemoteStoreError):
    """Raised when a named remote file does not exist."""


@dataclass(frozen=True)
class RemoteEntry:
    """One child of a remote folder."""

    id: str
    name: str
    is_folder: bool = False
    modified_time: str | None = None
    mime_type: str | None = None


@dataclass(frozen=True)
class RemotePage:
    """A page of folder children plus the continuation token, if any."""

    entries: list[RemoteEntry] = field(default_factory=list)
    next_page_token: str | None = None


class RemoteStore(Protocol):
    """Client for the remote file store."""

    async def list_children(
        self, folder_id: str, page_token: str | None = None
    ) -> RemotePage:
        pass

    async def get_content(self, file_id: str) -> bytes:
        pass

    async def find_child(self, folder_id: str, name: str) -> RemoteEntry | None:
        pass


def _is_document(entry: RemoteEntry) -> bool:
    return not entry.is_folder and entry.name.endswith(MARKDOWN_SUFFIX)


async def list_markdown_files(
    store: RemoteStore, folder_id: str, folder_path: str = ""
) -> list[RemoteFile]:
    """
    List every markdown file below a folder, depth first.

    Pages are followed until no continuation token remains. Errors from the
    store propagate; no retries or caching happen here.

    Args:
        store: Remote store client
        folder_id: Root folder to list
        folder_path: Path of folder_id relative to the vault root

    Returns:
        RemoteFile for each markdown file, with folder-relative path
    """
    files: list[RemoteFile] = []
    page_token: str | None = None

    while True:
        page = await store.list_children(folder_id, page_token)

        for entry in page.entries:
            child_path = f"{folder_path}/{entry.name}" if folder_path else entry.name
            if entry.is_folder:
                files.extend(await list_markdown_files(store, entry.id, child_path))
            elif _is_document(entry):
                files.append(
                    RemoteFile(
                        remote_id=entry.id,
                        name=entry.name,
                        path=child_path,
                        folder=folder_path or None,
                        modified_time=entry.modified_time,
                    )
                )

        page_token = page.next_page_token
        if not page_token:
            break

    return files


async def map_with_concurrency(
    items: Sequence[T],
    limit: int,
    mapper: Callable[[T, int], Awaitable[R]],
) -> list[R]:
    """
    Apply an async mapper with at most `limit` calls in flight.

    Results keep the order of `items` regardless of completion order.
    """
    bounded = max(1, int(limit or 1))
    results: list[R | None] = [None] * len(items)
    cursor = 0

    async def worker() -> None:
        nonlocal cursor
        while cursor < len(items):
            index = cursor
            cursor += 1
            results[index] = await mapper(items[index], index)

    workers = [
        asyncio.create_task(worker()) for _ in range(min(bounded, len(items)))
    ]
    try:
        await asyncio.gather(*workers)
    except BaseException:
        for task in workers:
            task.cancel()
        await asyncio.gather(*workers, return_exceptions=True)
        raise

    return results  # type: ignore[return-value]
