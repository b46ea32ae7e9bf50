"""Folder tree assembly from note paths."""

from collections.abc import Iterable

from vaultmirror.core.types import Document, FolderNode, FolderNoteRef


def build_folder_tree(documents: Iterable[Document]) -> FolderNode:
    """
    Build the nested folder tree for a set of notes.

    Pure function of the notes' folder paths; folders appear in first-seen
    order and notes keep the order they are given in.
    """
    documents = list(documents)
    root = FolderNode(name="root")
    folders: dict[str, FolderNode] = {"": root}

    for document in documents:
        if not document.folder:
            continue
        current = ""
        for part in document.folder.split("/"):
            parent = current
            current = f"{current}/{part}" if current else part
            if current in folders:
                continue
            node = FolderNode(name=part, path=current)
            folders[current] = node
            folders[parent].children.append(node)

    for document in documents:
        node = folders.get(document.folder or "")
        if node is not None:
            node.notes.append(FolderNoteRef(id=document.id, title=document.title))

    return root
