"""
Unit tests for the ContextBuilder module.
"""

import asyncio
import os
import random
import sys
import threading
from collections import deque

import pytest

sys.path.insert(0, os.path.join(os.path.dirname(__file__), "../../backend"))

from context_builder import (
    ContextBuilder,
    DocumentUnavailable,
    format_note_block,
    strip_links,
    undirected_neighbors,
)
from models import DocumentHandle, SelectionState


def note(name):
    return DocumentHandle(path=f"{name}.md", name=name)


class FakeVault:
    """In-memory link graph and document store keyed by note name."""

    def __init__(self, edges=None, contents=None, missing=()):
        self.edges = {source: list(targets) for source, targets in (edges or {}).items()}
        self.contents = contents or {}
        self.missing = set(missing)
        self.reads = []
        self.lookup_threads = set()

    def outgoing_links(self, handle):
        self.lookup_threads.add(threading.get_ident())
        return [note(target) for target in self.edges.get(handle.name, [])]

    def incoming_links(self, handle):
        incoming = []
        for source, targets in self.edges.items():
            if handle.name in targets and source not in [h.name for h in incoming]:
                incoming.append(note(source))
        return incoming

    async def read_document(self, handle):
        self.reads.append(handle.path)
        if handle.name in self.missing:
            raise FileNotFoundError(f"Note not found: {handle.path}")
        return self.contents.get(handle.name, f"Body of {handle.name}")


def make_builder(vault, max_depth=5, max_auto_notes=10):
    return ContextBuilder(vault, vault, max_depth=max_depth, max_auto_notes=max_auto_notes)


def names(chain):
    return [handle.name for handle in chain]


def undirected_distances(edges, seed):
    adjacency = {}
    for source, targets in edges.items():
        for target in targets:
            adjacency.setdefault(source, set()).add(target)
            adjacency.setdefault(target, set()).add(source)
    distances = {seed: 0}
    queue = deque([seed])
    while queue:
        current = queue.popleft()
        for neighbor in adjacency.get(current, ()):
            if neighbor not in distances:
                distances[neighbor] = distances[current] + 1
                queue.append(neighbor)
    return distances


def random_edges(rng, size, density):
    labels = [f"n{i}" for i in range(size)]
    return {
        label: [other for other in labels if other != label and rng.random() < density]
        for label in labels
    }


class TestDocumentHandle:
    def test_equality_uses_path_only(self):
        assert DocumentHandle("a.md", "A") == DocumentHandle("a.md", "Other")
        assert len({DocumentHandle("a.md", "A"), DocumentHandle("a.md", "B")}) == 1

    def test_from_path_uses_file_stem(self):
        handle = DocumentHandle.from_path("folder/My Note.md")
        assert handle.name == "My Note"


class TestUndirectedNeighbors:
    def test_outgoing_before_incoming(self):
        vault = FakeVault({"A": ["B"], "C": ["A"]})
        assert names(undirected_neighbors(note("A"), vault)) == ["B", "C"]

    def test_deduplicates_two_way_links_and_excludes_self(self):
        vault = FakeVault({"A": ["B", "A"], "B": ["A"]})
        assert names(undirected_neighbors(note("A"), vault)) == ["B"]


class TestAutoTraversal:
    def test_linear_scenario(self):
        """A links to B; B links to A and C."""
        vault = FakeVault({"A": ["B"], "B": ["A", "C"]})
        builder = make_builder(vault, max_depth=2, max_auto_notes=10)

        chain = builder.build_auto_chain(note("A"))

        assert names(chain) == ["A", "B", "C"]
        assert chain.state == SelectionState.NO_SELECTION

    def test_isolated_seed(self):
        builder = make_builder(FakeVault(), max_auto_notes=5)
        assert names(builder.build_auto_chain(note("A"))) == ["A"]

    def test_count_bound_keeps_first_neighbors(self):
        edges = {"A": [f"n{i}" for i in range(1, 6)]}
        edges.update({f"n{i}": ["A"] for i in range(6, 11)})
        builder = make_builder(FakeVault(edges), max_depth=1, max_auto_notes=3)

        assert names(builder.build_auto_chain(note("A"))) == ["A", "n1", "n2"]

    def test_backlinks_follow_outgoing_links(self):
        vault = FakeVault({"A": ["B"], "Z": ["A"]})
        builder = make_builder(vault, max_depth=1)
        assert names(builder.build_auto_chain(note("A"))) == ["A", "B", "Z"]

    def test_depth_zero_returns_seed_only(self):
        vault = FakeVault({"A": ["B", "C"]})
        builder = make_builder(vault, max_depth=0)
        assert names(builder.build_auto_chain(note("A"))) == ["A"]

    def test_nodes_at_max_depth_are_included_but_not_expanded(self):
        vault = FakeVault({"A": ["B"], "B": ["C"], "C": ["D"]})
        builder = make_builder(vault, max_depth=2)
        assert names(builder.build_auto_chain(note("A"))) == ["A", "B", "C"]

    def test_breadth_first_order(self):
        vault = FakeVault({"A": ["B", "C"], "B": ["D"], "C": ["E"]})
        builder = make_builder(vault, max_depth=3)
        assert names(builder.build_auto_chain(note("A"))) == ["A", "B", "C", "D", "E"]

    def test_cycle_terminates_without_duplicates(self):
        vault = FakeVault({"A": ["B"], "B": ["C"], "C": ["D"], "D": ["A"]})
        builder = make_builder(vault, max_depth=100, max_auto_notes=10)

        chain = builder.build_auto_chain(note("A"))

        assert sorted(names(chain)) == ["A", "B", "C", "D"]
        assert names(chain)[0] == "A"

    def test_self_loop(self):
        vault = FakeVault({"A": ["A"]})
        assert names(make_builder(vault).build_auto_chain(note("A"))) == ["A"]

    def test_properties_hold_on_random_graphs(self):
        rng = random.Random(7)
        for _ in range(40):
            edges = random_edges(rng, size=rng.randint(1, 12), density=rng.random() * 0.4)
            max_depth = rng.randint(0, 4)
            max_notes = rng.randint(1, 8)
            builder = make_builder(FakeVault(edges), max_depth=max_depth, max_auto_notes=max_notes)

            chain = builder.build_auto_chain(note("n0"))
            paths = chain.paths()
            distances = undirected_distances(edges, "n0")

            assert len(paths) == len(set(paths))
            assert paths[0] == "n0.md"
            assert len(paths) <= max_notes
            for handle in chain:
                assert distances[handle.name] <= max_depth

    def test_chain_fills_up_to_reachable_count(self):
        vault = FakeVault({"A": ["B", "C"], "C": ["D"]})
        builder = make_builder(vault, max_depth=5, max_auto_notes=10)
        assert len(builder.build_auto_chain(note("A"))) == 4


class TestConfigure:
    def test_configure_updates_bounds(self):
        vault = FakeVault({"A": ["B"], "B": ["C"]})
        builder = make_builder(vault, max_depth=1)
        assert names(builder.build_auto_chain(note("A"))) == ["A", "B"]

        builder.configure(max_depth=2, max_auto_notes=10)

        assert names(builder.build_auto_chain(note("A"))) == ["A", "B", "C"]

    def test_invalid_bounds_are_clamped(self):
        builder = make_builder(FakeVault({"A": ["B"]}))
        builder.configure(max_depth=-3, max_auto_notes=0)

        assert builder.max_depth == 0
        assert builder.max_auto_notes == 1
        assert names(builder.build_auto_chain(note("A"))) == ["A"]

    def test_constructor_clamps_too(self):
        builder = make_builder(FakeVault(), max_depth=-1, max_auto_notes=-5)
        assert (builder.max_depth, builder.max_auto_notes) == (0, 1)


class TestManualChain:
    def test_passthrough_ignores_graph(self):
        vault = FakeVault({"A": ["B"], "B": ["C"]})
        builder = make_builder(vault, max_auto_notes=1)

        chain = builder.build_manual_chain([note("C"), note("A"), note("B")])

        assert names(chain) == ["C", "A", "B"]
        assert chain.state == SelectionState.SELECTION_PROVIDED

    def test_duplicates_are_kept(self):
        builder = make_builder(FakeVault())
        assert names(builder.build_manual_chain([note("A"), note("A")])) == ["A", "A"]

    def test_context_from_notes_keeps_order(self):
        vault = FakeVault(contents={"a": "first", "b": "second", "c": "third"})
        builder = make_builder(vault)

        text = asyncio.run(builder.build_context_from_notes([note("a"), note("b"), note("c")]))

        assert text == (
            "--- [Note: a] ---\nfirst\n\n"
            "--- [Note: b] ---\nsecond\n\n"
            "--- [Note: c] ---\nthird\n\n"
        )

    def test_empty_selection_formats_to_empty_string(self):
        builder = make_builder(FakeVault())
        assert asyncio.run(builder.build_context_from_notes([])) == ""


class TestFormatter:
    def test_aliased_link_is_removed_entirely(self):
        assert strip_links("See [[Other Note|here]] for more.") == "See  for more."

    def test_text_without_links_is_unchanged(self):
        text = "Plain [single] brackets and ]] stray closers."
        assert strip_links(text) == text

    def test_multiple_links_are_removed_non_greedily(self):
        assert strip_links("[[A]] keeps [[B#Heading]] this") == " keeps  this"

    def test_block_layout(self):
        assert format_note_block("Idea", "body") == "--- [Note: Idea] ---\nbody\n\n"

    def test_auto_context_formats_chain_in_order(self):
        vault = FakeVault(
            {"A": ["B"]},
            contents={"A": "Start, see [[B]].", "B": "Reply to [[A|the start]]."},
        )
        text = asyncio.run(make_builder(vault).build_auto_context(note("A")))

        assert text == (
            "--- [Note: A] ---\nStart, see .\n\n"
            "--- [Note: B] ---\nReply to .\n\n"
        )

    def test_unreadable_note_fails_the_whole_build(self):
        vault = FakeVault({"A": ["B"], "B": ["C"]}, missing={"B"})
        builder = make_builder(vault)

        with pytest.raises(DocumentUnavailable) as exc_info:
            asyncio.run(builder.build_auto_context(note("A")))

        assert exc_info.value.path == "B.md"
        assert "B.md" in str(exc_info.value)
        assert isinstance(exc_info.value.__cause__, FileNotFoundError)
        assert "C.md" not in vault.reads

    def test_traversal_runs_off_the_event_loop_thread(self):
        vault = FakeVault({"A": ["B"]})

        async def build():
            return threading.get_ident(), await make_builder(vault).build_auto_context(note("A"))

        loop_thread, text = asyncio.run(build())

        assert text.startswith("--- [Note: A] ---")
        assert vault.lookup_threads
        assert loop_thread not in vault.lookup_threads
