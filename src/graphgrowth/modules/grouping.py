"""Assignment of paths to groups (samples) and group ordering."""

import logging
from typing import Dict, List, Optional, Iterable, Sequence

from graphgrowth.core.types import Group, OrderBinding
from graphgrowth.core.exceptions import ConfigurationError

logger = logging.getLogger(__name__)

GROUP_BY_CHOICES = ("path", "sample", "haplotype")


def pansn_label(path_name: str, group_by: str) -> str:
    """
    Derive a group label from a PanSN path name (sample#haplotype#contig).

    Names that do not follow PanSN are returned unchanged.
    """
    if group_by == "path":
        return path_name
    fields = path_name.split("#")
    if len(fields) < 2:
        return path_name
    if group_by == "sample":
        return fields[0]
    if group_by == "haplotype":
        return "#".join(fields[:2])
    raise ConfigurationError(
        f"Unknown grouping '{group_by}' (choose from {', '.join(GROUP_BY_CHOICES)})"
    )


class GroupIndex:
    """
    Maps paths to groups and keeps the active group order.

    Groups are created once, in order of first appearance among the selected
    paths. Subset and exclude lists are applied to paths before any group is
    created; an entry matches either a path name or a group label.
    """

    def __init__(
        self,
        path_names: Sequence[str],
        grouping: Optional[Dict[str, str]] = None,
        group_by: str = "path",
        subset: Optional[Iterable[str]] = None,
        exclude: Optional[Iterable[str]] = None
    ) -> None:
        if group_by not in GROUP_BY_CHOICES:
            raise ConfigurationError(
                f"Unknown grouping '{group_by}' (choose from {', '.join(GROUP_BY_CHOICES)})"
            )
        if grouping is not None and group_by != "path":
            raise ConfigurationError("A grouping file cannot be combined with PanSN grouping")

        subset = set(subset) if subset is not None else None
        exclude = set(exclude) if exclude is not None else set()

        self.groups: List[Group] = []
        self.path_to_group: Dict[str, int] = {}
        self._label_index: Dict[str, int] = {}

        unmapped = []
        for path in path_names:
            if grouping is not None:
                label = grouping.get(path)
                if label is None:
                    unmapped.append(path)
                    label = path
            else:
                label = pansn_label(path, group_by)

            if subset is not None and path not in subset and label not in subset:
                continue
            if path in exclude or label in exclude:
                continue

            group_id = self._label_index.get(label)
            if group_id is None:
                group_id = len(self.groups)
                self._label_index[label] = group_id
                self.groups.append(Group(id=group_id, label=label, ordinal=group_id))
            self.groups[group_id].paths.append(path)
            self.path_to_group[path] = group_id

        if unmapped:
            logger.warning(
                f"{len(unmapped)} paths are missing from the grouping and form their own group"
            )
        if grouping is not None:
            known = set(path_names)
            stale = [p for p in grouping if p not in known]
            if stale:
                logger.warning(f"Grouping lists {len(stale)} paths that are not in the graph")

        logger.info(
            f"Assigned {len(self.path_to_group)} of {len(path_names)} paths "
            f"to {len(self.groups)} groups"
        )

    def __len__(self) -> int:
        return len(self.groups)

    @property
    def labels(self) -> List[str]:
        """Group labels by group id."""
        return [g.label for g in self.groups]

    def by_label(self, label: str) -> Group:
        return self.groups[self._label_index[label]]

    def group_paths(self, group_id: int) -> List[str]:
        return self.groups[group_id].paths

    def ordered(self) -> List[Group]:
        """Groups sorted by their current ordinal."""
        return sorted(self.groups, key=lambda g: g.ordinal)

    def bind_order(self, order: Iterable[str]) -> OrderBinding:
        """
        Bind an external order of group labels (or path names) to the groups.

        Unknown names and groups missing from the order are reported, not
        raised: they are simply left out of the resulting order.

        Args:
            order: Group labels or path names in the desired order

        Returns:
            OrderBinding with ordered group ids and the mismatches
        """
        group_ids = []
        seen = set()
        unknown = []
        for name in order:
            group_id = self._label_index.get(name)
            if group_id is None:
                group_id = self.path_to_group.get(name)
            if group_id is None:
                unknown.append(name)
                continue
            if group_id in seen:
                continue
            seen.add(group_id)
            group_ids.append(group_id)

        unordered = [g.label for g in self.groups if g.id not in seen]

        if unknown:
            logger.warning(
                f"{len(unknown)} names in the order are not in the graph: "
                f"{', '.join(unknown[:5])}{' ...' if len(unknown) > 5 else ''}"
            )
        if unordered:
            logger.warning(
                f"{len(unordered)} groups are missing from the order and are excluded: "
                f"{', '.join(unordered[:5])}{' ...' if len(unordered) > 5 else ''}"
            )

        return OrderBinding(group_ids=group_ids, unknown_labels=unknown,
                            unordered_labels=unordered)

    def apply_order(self, group_ids: Sequence[int]) -> None:
        """
        Reassign ordinals so that group_ids[i] gets ordinal i.

        Groups absent from group_ids keep their relative order after the
        listed ones.
        """
        if len(set(group_ids)) != len(group_ids):
            raise ConfigurationError("Group order contains duplicates")
        if any(g < 0 or g >= len(self.groups) for g in group_ids):
            raise ConfigurationError("Group order refers to unknown group ids")

        listed = set(group_ids)
        rest = [g.id for g in self.ordered() if g.id not in listed]
        for ordinal, group_id in enumerate(list(group_ids) + rest):
            self.groups[group_id].ordinal = ordinal
