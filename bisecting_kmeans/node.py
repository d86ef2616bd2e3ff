from __future__ import annotations

from typing import Any, Dict, Iterator, List, Optional, Tuple

import numpy as np

from .metrics import as_vector

Edge = Tuple[int, int, float]
LinkageRow = Tuple[int, int, float, int]


class ClusterNode(object):
    """A cluster in the binary tree produced by bisecting k-means.

    A node is either a leaf (no children) or an internal node with exactly
    two children. Nodes are immutable once constructed and all traversals
    are iterative, so arbitrarily deep trees can be exported without hitting
    the interpreter's recursion limit.

    Args:
        index (int): Identifier of the node, unique within its tree.
        center: The cluster centroid (any rank-1 array-like).
        left (Optional[ClusterNode]): Left child.
        right (Optional[ClusterNode]): Right child.
        height (float): Dissimilarity at which the two children merge.
            Leaves normally keep the default ``0.0``.
        weight (float): Weight of the edge from the parent to this node,
            as assigned by the training algorithm.
        size (Optional[int]): Number of training points in the cluster.
        cost (Optional[float]): Sum of the distances of those points to
            ``center``.

    Raises:
        ValueError: If exactly one child is given or ``height`` is negative.

    Examples:

        A root that was split into two leaves:

        .. code-block:: python

            from bisecting_kmeans import ClusterNode

            root = ClusterNode(
                1, [5.0],
                left=ClusterNode(2, [0.0], weight=5.0),
                right=ClusterNode(3, [10.0], weight=5.0),
                height=10.0,
            )
            root.to_adjacency_list()
            # [(1, 2, 5.0), (1, 3, 5.0)]
            root.to_linkage_matrix()
            # [(0, 1, 10.0, 2)]
    """

    __slots__ = ("_index", "_center", "_left", "_right", "_height", "_weight", "_size", "_cost")

    def __init__(
        self,
        index: int,
        center,
        left: Optional[ClusterNode] = None,
        right: Optional[ClusterNode] = None,
        height: float = 0.0,
        weight: float = 0.0,
        size: Optional[int] = None,
        cost: Optional[float] = None,
    ) -> None:
        if (left is None) != (right is None):
            raise ValueError(
                f"Node {index} must have either zero or two children."
            )
        if height < 0:
            raise ValueError(f"Node {index} has a negative height: {height}.")
        self._index = int(index)
        self._center = as_vector(center)
        self._left = left
        self._right = right
        self._height = float(height)
        self._weight = float(weight)
        self._size = None if size is None else int(size)
        self._cost = None if cost is None else float(cost)

    @property
    def index(self) -> int:
        return self._index

    @property
    def center(self) -> np.ndarray:
        return self._center

    @property
    def left(self) -> Optional[ClusterNode]:
        return self._left

    @property
    def right(self) -> Optional[ClusterNode]:
        return self._right

    @property
    def height(self) -> float:
        return self._height

    @property
    def weight(self) -> float:
        return self._weight

    @property
    def size(self) -> Optional[int]:
        return self._size

    @property
    def cost(self) -> Optional[float]:
        return self._cost

    @property
    def is_leaf(self) -> bool:
        return self._left is None

    @property
    def children(self) -> Tuple[ClusterNode, ...]:
        """``()`` for a leaf, ``(left, right)`` otherwise."""
        if self._left is None:
            return ()
        return (self._left, self._right)

    def __repr__(self) -> str:
        return (
            f"ClusterNode(index={self._index}, center={self._center}, "
            f"is_leaf={self.is_leaf}, height={self._height})"
        )

    def iter_preorder(self) -> Iterator[ClusterNode]:
        """Yield every node of the subtree, parents before children and
        left subtrees before right ones."""
        stack = [self]
        while stack:
            node = stack.pop()
            yield node
            # 先压入右子节点，保证左子树先被访问
            if node._left is not None:
                stack.append(node._right)
                stack.append(node._left)

    def iter_postorder(self) -> Iterator[ClusterNode]:
        """Yield every node of the subtree, children before parents and
        left subtrees before right ones."""
        stack: List[Tuple[ClusterNode, bool]] = [(self, False)]
        while stack:
            node, expanded = stack.pop()
            if expanded or node._left is None:
                yield node
                continue
            stack.append((node, True))
            stack.append((node._right, False))
            stack.append((node._left, False))

    def leaves(self) -> List[ClusterNode]:
        """All leaves under this node, left to right.

        The order is a pure function of the tree, so repeated calls return
        the same sequence.
        """
        return [node for node in self.iter_preorder() if node._left is None]

    def internal_nodes(self) -> List[ClusterNode]:
        """All non-leaf nodes under this node in pre-order."""
        return [node for node in self.iter_preorder() if node._left is not None]

    def num_leaves(self) -> int:
        return sum(1 for node in self.iter_preorder() if node._left is None)

    def depth(self) -> int:
        """Number of edges on the longest path from this node to a leaf."""
        deepest = 0
        stack = [(self, 0)]
        while stack:
            node, level = stack.pop()
            deepest = max(deepest, level)
            for child in node.children:
                stack.append((child, level + 1))
        return deepest

    def find(self, index: int) -> Optional[ClusterNode]:
        """Return the node with the given index, or None."""
        for node in self.iter_preorder():
            if node._index == index:
                return node
        return None

    def validate(self) -> None:
        """Check that no two nodes of the subtree share an index.

        Raises:
            ValueError: On the first duplicated index.
        """
        seen = set()
        for node in self.iter_preorder():
            if node._index in seen:
                raise ValueError(f"Duplicate node index in cluster tree: {node._index}.")
            seen.add(node._index)

    def to_adjacency_list(self) -> List[Edge]:
        """Export the tree as ``(parent_index, child_index, weight)`` edges.

        Parents come before their children and left edges before right
        ones. The weight is the one stored on the child node.

        Returns:
            List[Tuple[int, int, float]]: Two edges per internal node.
        """
        edges: List[Edge] = []
        for node in self.iter_preorder():
            if node._left is None:
                continue
            edges.append((node._index, node._left._index, node._left._weight))
            edges.append((node._index, node._right._index, node._right._weight))
        return edges

    def to_linkage_matrix(self) -> List[LinkageRow]:
        """Export the tree as a dendrogram linkage matrix.

        The layout follows SciPy's convention: with ``n`` leaves, leaf ids
        are ``0..n-1`` in :meth:`leaves` order and the internal node built by
        row ``r`` gets id ``n + r``. Rows are ordered by ascending merge
        height; ties keep post-order, so a child row always precedes its
        parent's.

        Returns:
            List[Tuple[int, int, float, int]]: ``(left_id, right_id, height,
                count)`` for every internal node, where ``count`` is the
                number of leaves under it.
        """
        ids: Dict[int, int] = {}
        counts: Dict[int, int] = {}
        internal: List[ClusterNode] = []
        n_leaves = 0
        # 节点以 id() 为键：节点索引是否唯一由调用方保证
        for node in self.iter_postorder():
            if node._left is None:
                ids[id(node)] = n_leaves
                counts[id(node)] = 1
                n_leaves += 1
            else:
                counts[id(node)] = counts[id(node._left)] + counts[id(node._right)]
                internal.append(node)

        # sorted() 是稳定排序，等高节点保持后序顺序
        internal = sorted(internal, key=lambda node: node._height)
        for row, node in enumerate(internal):
            ids[id(node)] = n_leaves + row

        return [
            (
                ids[id(node._left)],
                ids[id(node._right)],
                node._height,
                counts[id(node)],
            )
            for node in internal
        ]

    def to_dict(self) -> Dict[str, Any]:
        """Nested plain-dict encoding of the subtree."""
        encoded: Dict[int, Dict[str, Any]] = {}
        for node in self.iter_postorder():
            item: Dict[str, Any] = {
                "index": node._index,
                "center": node._center.tolist(),
                "height": node._height,
                "weight": node._weight,
                "size": node._size,
                "cost": node._cost,
            }
            if node._left is not None:
                item["left"] = encoded.pop(id(node._left))
                item["right"] = encoded.pop(id(node._right))
            encoded[id(node)] = item
        return encoded[id(self)]

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> ClusterNode:
        """Rebuild a tree encoded by :meth:`to_dict`."""
        built: Dict[int, ClusterNode] = {}
        stack: List[Tuple[Dict[str, Any], bool]] = [(data, False)]
        while stack:
            item, expanded = stack.pop()
            has_children = "left" in item or "right" in item
            if has_children and not expanded:
                stack.append((item, True))
                if "right" in item:
                    stack.append((item["right"], False))
                if "left" in item:
                    stack.append((item["left"], False))
                continue
            left = built.pop(id(item["left"])) if "left" in item else None
            right = built.pop(id(item["right"])) if "right" in item else None
            built[id(item)] = cls(
                item["index"],
                item["center"],
                left=left,
                right=right,
                height=item.get("height", 0.0),
                weight=item.get("weight", 0.0),
                size=item.get("size"),
                cost=item.get("cost"),
            )
        return built[id(data)]
