# =============================================================================
# core/spatial_index.py  —  R-tree Spatial Index
# =============================================================================
#
# WHAT THIS MODULE DOES:
#   A small R-tree for bounding-box queries over map points.  The mapping
#   agent builds an index once, keeps the serialized tree, and asks
#   "what lies inside these bounds?" later without rebuilding.
#
# TREE SHAPE:
#   Node JSON follows RBush: {children, height, leaf, minX, minY, maxX, maxY}.
#   Leaf children are items ({minX, minY, maxX, maxY, id, data?}).  Leaves
#   have height 1.  Bulk loading packs items bucket by bucket (sort by x,
#   slice, sort each slice by y), so a freshly loaded tree is near-optimal.
#
#   insert() and load() into a non-empty index rebuild the tree from all
#   items; the index serves read-heavy tool calls.
#
# COORDINATES:
#   x is longitude, y is latitude.  Points are zero-area boxes.
# =============================================================================

import math
from typing import Iterable, Optional

from core.models import SpatialItem

BBox = tuple[float, float, float, float]   # (min_x, min_y, max_x, max_y)


class _Node:
    __slots__ = ("children", "height", "leaf", "min_x", "min_y", "max_x", "max_y")

    def __init__(self, children: list, leaf: bool = True, height: int = 1):
        self.children = children
        self.leaf = leaf
        self.height = height
        self.min_x = self.min_y = math.inf
        self.max_x = self.max_y = -math.inf

    @property
    def bbox(self) -> BBox:
        return (self.min_x, self.min_y, self.max_x, self.max_y)

    def refresh_bbox(self) -> None:
        self.min_x = self.min_y = math.inf
        self.max_x = self.max_y = -math.inf
        for child in self.children:
            min_x, min_y, max_x, max_y = _bbox_of(child)
            self.min_x = min(self.min_x, min_x)
            self.min_y = min(self.min_y, min_y)
            self.max_x = max(self.max_x, max_x)
            self.max_y = max(self.max_y, max_y)


def _bbox_of(entry) -> BBox:
    if isinstance(entry, _Node):
        return entry.bbox
    return (entry.min_x, entry.min_y, entry.max_x, entry.max_y)


def _intersects(a: BBox, b: BBox) -> bool:
    return b[0] <= a[2] and b[1] <= a[3] and b[2] >= a[0] and b[3] >= a[1]


def _contains(a: BBox, b: BBox) -> bool:
    return a[0] <= b[0] and a[1] <= b[1] and b[2] <= a[2] and b[3] <= a[3]


class SpatialIndex:
    """Bulk-loaded R-tree over SpatialItems."""

    def __init__(self, max_entries: int = 9):
        if max_entries < 2:
            raise ValueError("max_entries must be at least 2")
        self.max_entries = max_entries
        self._root = _Node([])

    def __len__(self) -> int:
        return len(self.all())

    # --- building -----------------------------------------------------------
    def load(self, items: Iterable[SpatialItem]) -> "SpatialIndex":
        new_items = list(items)
        if not new_items:
            return self
        everything = self.all() + new_items
        self._root = self._build(everything, height=None)
        return self

    def insert(self, item: SpatialItem) -> "SpatialIndex":
        return self.load([item])

    def clear(self) -> "SpatialIndex":
        self._root = _Node([])
        return self

    def _build(self, items: list[SpatialItem], height: Optional[int]) -> _Node:
        n = len(items)
        m = self.max_entries

        if n <= m:
            node = _Node(list(items), leaf=True, height=1)
            node.refresh_bbox()
            return node

        if height is None:
            # Target height of the tree, then the root fan-out that fits it
            height = math.ceil(math.log(n) / math.log(m))
            m = math.ceil(n / m ** (height - 1))

        node = _Node([], leaf=False, height=height)

        per_child = math.ceil(n / m)
        per_column = per_child * math.ceil(math.sqrt(m))

        by_x = sorted(items, key=lambda it: it.min_x)
        for i in range(0, n, per_column):
            column = sorted(by_x[i:i + per_column], key=lambda it: it.min_y)
            for j in range(0, len(column), per_child):
                node.children.append(self._build(column[j:j + per_child], height - 1))

        node.refresh_bbox()
        return node

    # --- querying -----------------------------------------------------------
    def search(self, bbox: BBox) -> list[SpatialItem]:
        """All items whose box intersects `bbox` (edges inclusive)."""
        node = self._root
        if not node.children or not _intersects(bbox, node.bbox):
            return []

        result: list[SpatialItem] = []
        stack = [node]
        while stack:
            node = stack.pop()
            for child in node.children:
                child_bbox = _bbox_of(child)
                if not _intersects(bbox, child_bbox):
                    continue
                if node.leaf:
                    result.append(child)
                elif _contains(bbox, child_bbox):
                    result.extend(self._items_under(child))
                else:
                    stack.append(child)
        return result

    def collides(self, bbox: BBox) -> bool:
        """True if any item intersects `bbox`."""
        node = self._root
        if not node.children or not _intersects(bbox, node.bbox):
            return False

        stack = [node]
        while stack:
            node = stack.pop()
            for child in node.children:
                child_bbox = _bbox_of(child)
                if not _intersects(bbox, child_bbox):
                    continue
                if node.leaf or _contains(bbox, child_bbox):
                    return True
                stack.append(child)
        return False

    def all(self) -> list[SpatialItem]:
        return self._items_under(self._root)

    @staticmethod
    def _items_under(node: _Node) -> list[SpatialItem]:
        items: list[SpatialItem] = []
        stack = [node]
        while stack:
            current = stack.pop()
            if current.leaf:
                items.extend(current.children)
            else:
                stack.extend(current.children)
        return items

    # --- serialization ------------------------------------------------------
    def to_json(self) -> dict:
        return _node_to_json(self._root)

    @classmethod
    def from_json(cls, data: dict, max_entries: int = 9) -> "SpatialIndex":
        if not isinstance(data, dict) or "children" not in data:
            raise ValueError("Tree JSON must be an object with a 'children' list")
        index = cls(max_entries=max_entries)
        index._root = _node_from_json(data)
        return index


def _node_to_json(node: _Node) -> dict:
    if node.leaf:
        children = [item.to_dict() for item in node.children]
    else:
        children = [_node_to_json(child) for child in node.children]
    # An empty tree reports RBush's infinite bbox; JSON has no Infinity, so use None.
    empty = not node.children
    return {
        "children": children,
        "height": node.height,
        "leaf": node.leaf,
        "minX": None if empty else node.min_x,
        "minY": None if empty else node.min_y,
        "maxX": None if empty else node.max_x,
        "maxY": None if empty else node.max_y,
    }


def _node_from_json(data: dict) -> _Node:
    try:
        leaf = bool(data["leaf"])
        if leaf:
            children = [SpatialItem.from_dict(raw) for raw in data["children"]]
        else:
            children = [_node_from_json(raw) for raw in data["children"]]
        node = _Node(children, leaf=leaf, height=int(data.get("height", 1)))
    except (KeyError, TypeError) as exc:
        raise ValueError(f"Malformed tree JSON: {exc}") from exc
    node.refresh_bbox()
    return node


# =============================================================================
# Point helpers used by the spatial-index tools
# =============================================================================
def build_point_index(points: list[dict]) -> SpatialIndex:
    """Index points given as {id, lat, lng, data?}."""
    if not points:
        raise ValueError("No points provided to build the spatial index")

    items = [
        SpatialItem(
            min_x=float(p["lng"]),
            min_y=float(p["lat"]),
            max_x=float(p["lng"]),
            max_y=float(p["lat"]),
            id=str(p["id"]),
            data=p.get("data"),
        )
        for p in points
    ]
    return SpatialIndex().load(items)


def search_bounds(
    tree_json: dict,
    south_west: tuple[float, float],
    north_east: tuple[float, float],
) -> list[SpatialItem]:
    """Items inside the box spanned by two [lat, lng] corners."""
    sw_lat, sw_lng = south_west
    ne_lat, ne_lng = north_east
    index = SpatialIndex.from_json(tree_json)
    return index.search((sw_lng, sw_lat, ne_lng, ne_lat))
