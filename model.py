from collections import defaultdict, deque


class Item:
    def __init__(self, name, profit=0):
        self._name = name
        self._profit = profit

    @property
    def name(self):
        return self._name

    @property
    def profit(self):
        return self._profit

    def __eq__(self, other):
        if not isinstance(other, Item):
            return NotImplemented
        return self._name == other._name

    def __hash__(self):
        return hash(self._name)

    def __repr__(self):
        return f"Item({self._name!r}, {self._profit})"


class TransactionItem:
    def __init__(self, item, quantity):
        self._item = item
        self._quantity = quantity

    @property
    def item(self):
        return self._item

    @property
    def name(self):
        return self._item.name

    @property
    def quantity(self):
        return self._quantity

    @property
    def utility(self):
        # Negative profit or quantity contributes nothing.
        return max(self._item.profit, 0) * max(self._quantity, 0)

    def __repr__(self):
        return f"TransactionItem({self._item.name!r}, {self._quantity})"


class Transaction:
    def __init__(self, tid, items=()):
        self._tid = tid
        self._items = tuple(items)

    @property
    def tid(self):
        return self._tid

    @property
    def items(self):
        return self._items

    @property
    def utility(self):
        return sum(ti.utility for ti in self._items)

    def add_item(self, transaction_item):
        return Transaction(self._tid, self._items + (transaction_item,))

    def utilities(self):
        """Utility per item name, duplicates summed."""
        out = defaultdict(int)
        for ti in self._items:
            out[ti.name] += ti.utility
        return dict(out)

    def quantities(self):
        out = defaultdict(int)
        for ti in self._items:
            out[ti.name] += ti.quantity
        return dict(out)

    def __repr__(self):
        return f"Transaction({self._tid}, {list(self._items)})"


class Taxonomy:
    """Single-parent is-a hierarchy over item names (a forest)."""

    def __init__(self):
        self.parent = {}
        self.children = defaultdict(set)

    @classmethod
    def from_relations(cls, relations):
        taxonomy = cls()
        for child, parent in relations:
            taxonomy.add_relation(child, parent)
        return taxonomy

    def add_relation(self, child, parent):
        """Register ``child`` under ``parent``, replacing any previous parent.

        Raises ValueError when the edge would close a cycle.
        """
        if parent in self._subtree(child):
            raise ValueError(f"relation {child!r} -> {parent!r} creates a cycle")
        old = self.parent.get(child)
        if old is not None and old != parent:
            self.children[old].discard(child)
        self.parent[child] = parent
        self.children[parent].add(child)
        self.children.setdefault(child, set())

    def has_parent(self, item):
        return item in self.parent

    def get_parent(self, item):
        return self.parent.get(item)

    def get_ancestors(self, item):
        ancestors = []
        current = item
        while current in self.parent:
            current = self.parent[current]
            ancestors.append(current)
        return ancestors

    def get_children(self, node):
        return frozenset(self.children.get(node, ()))

    def get_all_nodes(self):
        nodes = set(self.parent)
        nodes.update(self.parent.values())
        nodes.update(self.children)
        return nodes

    def get_level(self, node, leaf_items):
        """Shortest downward edge count from ``node`` to a leaf item.

        Returns None when no leaf item is reachable.
        """
        if node in leaf_items:
            return 0
        seen = {node}
        queue = deque([(node, 0)])
        while queue:
            current, depth = queue.popleft()
            for child in self.children.get(current, ()):
                if child in leaf_items:
                    return depth + 1
                if child not in seen:
                    seen.add(child)
                    queue.append((child, depth + 1))
        return None

    def get_descendants(self, node, leaf_items):
        if node in leaf_items:
            return {node}
        found = set()
        seen = {node}
        queue = deque([node])
        while queue:
            current = queue.popleft()
            for child in self.children.get(current, ()):
                if child in leaf_items:
                    found.add(child)
                elif child not in seen:
                    seen.add(child)
                    queue.append(child)
        return found

    def _subtree(self, node):
        seen = {node}
        queue = deque([node])
        while queue:
            current = queue.popleft()
            for child in self.children.get(current, ()):
                if child not in seen:
                    seen.add(child)
                    queue.append(child)
        return seen
