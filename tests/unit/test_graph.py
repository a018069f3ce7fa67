"""
Unit tests for cycle detection.
"""

from hypothesis import given, strategies as st

from taskguard.integrity import find_cycles, nodes_in_cycles


class TestFindCycles:
    """Tests for find_cycles"""

    def test_acyclic(self):
        """Test a DAG has no cycles"""
        assert find_cycles({"a": ["b", "c"], "b": ["c"], "c": []}) == []

    def test_two_node_cycle(self):
        """Test a simple back edge"""
        assert find_cycles({"a": ["b"], "b": ["a"], "c": []}) == [["a", "b"]]

    def test_self_loop(self):
        """Test a node pointing at itself"""
        assert find_cycles({"a": ["a"]}) == [["a"]]

    def test_cycle_reached_from_tail(self):
        """Test the cycle excludes the path that leads into it"""
        assert find_cycles({"x": ["a"], "a": ["b"], "b": ["c"], "c": ["a"]}) == [["a", "b", "c"]]

    def test_unknown_successors_are_leaves(self):
        """Test edges to nodes with no entry do not fail"""
        assert find_cycles({"a": ["missing"]}) == []

    def test_deterministic_order(self):
        """Test results do not depend on dict insertion order"""
        forward = {"b": ["a"], "a": ["b"], "d": ["c"], "c": ["d"]}
        backward = dict(reversed(list(forward.items())))

        assert find_cycles(forward) == find_cycles(backward) == [["a", "b"], ["c", "d"]]

    @given(st.dictionaries(st.sampled_from("abcdef"), st.lists(st.sampled_from("abcdef"), max_size=3), max_size=6))
    def test_reported_cycles_are_real(self, edges):
        """Test every reported cycle follows existing edges back to its start"""
        for cycle in find_cycles(edges):
            for current, nxt in zip(cycle, cycle[1:] + cycle[:1]):
                assert nxt in edges.get(current, [])


class TestNodesInCycles:
    """Tests for nodes_in_cycles"""

    def test_members_map_to_their_cycle(self):
        """Test each member maps to the cycle it was found in"""
        members = nodes_in_cycles({"a": ["b"], "b": ["a"], "c": ["a"]})

        assert members == {"a": ["a", "b"], "b": ["a", "b"]}

    def test_no_cycles(self):
        """Test an acyclic graph has no members"""
        assert nodes_in_cycles({"a": [], "b": ["a"]}) == {}
