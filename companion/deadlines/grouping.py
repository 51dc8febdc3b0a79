"""
Duplicate grouping: union pairwise duplicates into connected components.

A triple where A~B and B~C ends up in one group even when A and C are not
directly similar enough. O(n^2) pair comparisons; per-user deadline counts
are in the tens.
"""

from __future__ import annotations

from companion.deadlines.models import Deadline, DeadlineSource, DedupMember
from companion.deadlines.similarity import evaluate_duplicate_signal

GITHUB_ID_PREFIX = "github-"


class UnionFind:
    """Array-backed disjoint sets with path compression and union by rank."""

    def __init__(self, size: int):
        self.parent = list(range(size))
        self.rank = [0] * size

    def find(self, value: int) -> int:
        root = value
        while self.parent[root] != root:
            root = self.parent[root]
        # Path compression
        while self.parent[value] != root:
            self.parent[value], value = root, self.parent[value]
        return root

    def union(self, left: int, right: int) -> None:
        left_root = self.find(left)
        right_root = self.find(right)
        if left_root == right_root:
            return
        if self.rank[left_root] < self.rank[right_root]:
            left_root, right_root = right_root, left_root
        self.parent[right_root] = left_root
        if self.rank[left_root] == self.rank[right_root]:
            self.rank[left_root] += 1


def infer_deadline_source(deadline: Deadline) -> DeadlineSource:
    """
    Infer provenance: a Canvas link wins, then the github- id prefix.

    The id prefix is only a fallback hint, never authoritative.
    """
    if deadline.canvas_assignment_id is not None:
        return DeadlineSource.CANVAS
    if deadline.id.startswith(GITHUB_ID_PREFIX):
        return DeadlineSource.GITHUB
    return DeadlineSource.MANUAL


def tag_sources(deadlines: list[Deadline]) -> list[DedupMember]:
    return [
        DedupMember(**deadline.model_dump(), source=infer_deadline_source(deadline))
        for deadline in deadlines
    ]


def group_duplicates(deadlines: list[Deadline]) -> list[list[DedupMember]]:
    """
    Connected components of the pairwise duplicate graph.

    Singletons are dropped. Groups and their members keep input order, so the
    output is deterministic for a given input list.
    """
    members = tag_sources(deadlines)
    if len(members) < 2:
        return []

    sets = UnionFind(len(members))
    for i in range(len(members)):
        for j in range(i + 1, len(members)):
            if evaluate_duplicate_signal(members[i], members[j]).is_duplicate:
                sets.union(i, j)

    groups: dict[int, list[DedupMember]] = {}
    for index, member in enumerate(members):
        groups.setdefault(sets.find(index), []).append(member)

    return [group for group in groups.values() if len(group) > 1]
