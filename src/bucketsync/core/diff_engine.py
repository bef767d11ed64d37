"""Pure comparison of a local scan against a remote listing."""

from collections import Counter
from typing import Dict, Iterable, List, Mapping

from ..models import ActionKind, FileEntry, ObjectEntry, SyncAction, SyncDirection
from ..utils.logging import get_logger


def summarize(actions: Iterable[SyncAction]) -> Dict[str, int]:
    """Count actions per kind, with every kind present."""
    counts = Counter(action.kind for action in actions)
    return {kind.value: counts.get(kind, 0) for kind in ActionKind}


class DiffEngine:
    """Builds the ordered action list that converges two sides.

    Only sizes are compared. Files of equal size are skipped even when their
    timestamps differ, so a same-size edit is not detected. An object whose
    size the listing did not report counts as changed.
    """

    def __init__(self):
        self.logger = get_logger(self.__class__.__name__)

    def diff(
        self,
        local: Mapping[str, FileEntry],
        remote: Mapping[str, ObjectEntry],
        direction: SyncDirection
    ) -> List[SyncAction]:
        """Compare both sides for ``direction``.

        Args:
            local: Scanner output keyed by relative path
            remote: Lister output keyed by relative key
            direction: Which side is authoritative

        Returns:
            Actions sorted by kind order (deletes last), then key
        """
        direction = SyncDirection(direction)
        to_remote = direction == SyncDirection.MIRROR_TO_REMOTE
        actions: List[SyncAction] = []

        for key, entry in local.items():
            if entry.is_directory:
                continue
            remote_entry = remote.get(key)
            if remote_entry is None:
                actions.append(SyncAction.upload(key) if to_remote else SyncAction.delete_local(key))
            elif remote_entry.size_bytes is not None and remote_entry.size_bytes == entry.size_bytes:
                actions.append(SyncAction.skip(key))
            else:
                actions.append(SyncAction.upload(key) if to_remote else SyncAction.download(key))

        for key in remote:
            if key in local and not local[key].is_directory:
                continue
            actions.append(SyncAction.delete_remote(key) if to_remote else SyncAction.download(key))

        actions.sort(key=SyncAction.sort_key)

        self.logger.debug("Diff computed", direction=direction.value, **summarize(actions))
        return actions
