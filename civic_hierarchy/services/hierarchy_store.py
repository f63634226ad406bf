# civic_hierarchy/services/hierarchy_store.py
"""
In-memory arena over the hierarchy forest.

Nodes are addressed by id; child lookups go through an index built on load,
so closure and ancestor queries are plain traversals that need no database.
A store is built once per request from the `hierarchy_nodes` collection.
"""

from collections import defaultdict, deque
from typing import Dict, Iterable, Iterator, List, Optional, Set

from pydantic import BaseModel, ConfigDict

from civic_hierarchy.models.hierarchy import (
    HierarchyKind,
    HierarchyNode,
    NodeLevel,
    NodeStatus,
    SectorType,
)


class NodeRecord(BaseModel):
    id: str
    kind: HierarchyKind
    level: NodeLevel
    parent_id: Optional[str] = None
    sector_type: Optional[SectorType] = None
    anchor_id: Optional[str] = None
    status: NodeStatus = NodeStatus.ACTIVE
    name: str = ""
    code: Optional[str] = None

    model_config = ConfigDict(frozen=True)

    @property
    def is_active(self) -> bool:
        return self.status == NodeStatus.ACTIVE

    @classmethod
    def from_document(cls, node: HierarchyNode) -> "NodeRecord":
        return cls(
            id=str(node.id),
            kind=node.kind,
            level=node.level,
            parent_id=node.parent_id,
            sector_type=node.sector_type,
            anchor_id=node.anchor_id,
            status=node.status,
            name=node.name,
            code=node.code,
        )


class HierarchyStore:
    def __init__(self, nodes: Iterable[NodeRecord] = ()):
        self._nodes: Dict[str, NodeRecord] = {}
        self._children: Dict[str, Set[str]] = defaultdict(set)
        for node in nodes:
            self.add(node)

    @classmethod
    def from_documents(cls, documents: Iterable[HierarchyNode]) -> "HierarchyStore":
        return cls(NodeRecord.from_document(doc) for doc in documents)

    def add(self, node: NodeRecord) -> None:
        previous = self._nodes.get(node.id)
        if previous is not None and previous.parent_id:
            self._children[previous.parent_id].discard(node.id)
        self._nodes[node.id] = node
        if node.parent_id:
            self._children[node.parent_id].add(node.id)

    def __contains__(self, node_id) -> bool:
        return node_id in self._nodes

    def __len__(self) -> int:
        return len(self._nodes)

    def __iter__(self) -> Iterator[NodeRecord]:
        return iter(self._nodes.values())

    def get(self, node_id: Optional[str]) -> Optional[NodeRecord]:
        if node_id is None:
            return None
        return self._nodes.get(node_id)

    def get_active(self, node_id: Optional[str]) -> Optional[NodeRecord]:
        node = self.get(node_id)
        return node if node is not None and node.is_active else None

    def nodes_of_kind(self, kind: HierarchyKind) -> List[NodeRecord]:
        return [node for node in self._nodes.values() if node.kind == kind]

    def children(self, node_id: str, active_only: bool = False) -> List[NodeRecord]:
        children = [self._nodes[child_id] for child_id in self._children.get(node_id, ())]
        if active_only:
            children = [child for child in children if child.is_active]
        return children

    def descendant_ids(self, node_id: str) -> Set[str]:
        """The node itself plus every transitive descendant (breadth-first)."""
        if node_id not in self._nodes:
            return set()
        closure = {node_id}
        queue = deque([node_id])
        while queue:
            current = queue.popleft()
            for child_id in self._children.get(current, ()):
                if child_id not in closure:
                    closure.add(child_id)
                    queue.append(child_id)
        return closure

    def chain(self, node_id: str) -> List[NodeRecord]:
        """The node followed by its ancestors, nearest first."""
        chain = []
        seen = set()
        current = self.get(node_id)
        while current is not None and current.id not in seen:
            chain.append(current)
            seen.add(current.id)
            current = self.get(current.parent_id)
        return chain

    def ancestors(self, node_id: str) -> List[NodeRecord]:
        """Ancestors ordered from the root down to the immediate parent."""
        return self.chain(node_id)[1:][::-1]

    def lineage(self, node_id: str) -> Dict[str, str]:
        return {node.level.value: node.id for node in self.chain(node_id)}

    def is_descendant(self, node_id: str, ancestor_id: str) -> bool:
        """True when `node_id` is `ancestor_id` or lies below it."""
        return any(node.id == ancestor_id for node in self.chain(node_id))

    def is_leaf(self, node_id: str) -> bool:
        return not self.children(node_id, active_only=True)
