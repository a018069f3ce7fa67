"""
Cycle detection over directed id graphs (list hierarchies, item dependencies).
"""

from typing import Iterable


def find_cycles(edges: dict[str, Iterable[str]]) -> list[list[str]]:
    """
    Return the cycles reachable in ``edges`` (node -> successors).

    Each cycle is reported once, as the node sequence starting from the
    node where it was first entered. Successors absent from ``edges`` are
    treated as leaves. Iteration order follows sorted node ids so results
    are deterministic.

    Examples:
        >>> find_cycles({"a": ["b"], "b": ["a"], "c": []})
        [['a', 'b']]
    """
    white, grey, black = 0, 1, 2
    color: dict[str, int] = {}
    cycles: list[list[str]] = []

    for root in sorted(edges):
        if color.get(root, white) != white:
            continue

        # Iterative DFS: stack of (node, iterator over successors)
        path: list[str] = [root]
        color[root] = grey
        stack = [(root, iter(sorted(edges.get(root, ()))))]

        while stack:
            node, successors = stack[-1]
            advanced = False
            for nxt in successors:
                state = color.get(nxt, white)
                if state == white:
                    color[nxt] = grey
                    path.append(nxt)
                    stack.append((nxt, iter(sorted(edges.get(nxt, ())))))
                    advanced = True
                    break
                if state == grey:
                    cycles.append(path[path.index(nxt):])
            if not advanced:
                color[node] = black
                path.pop()
                stack.pop()

    return cycles


def nodes_in_cycles(edges: dict[str, Iterable[str]]) -> dict[str, list[str]]:
    """Map every node that sits on a cycle to the cycle it was found in."""
    members: dict[str, list[str]] = {}
    for cycle in find_cycles(edges):
        for node in cycle:
            members.setdefault(node, cycle)
    return members
