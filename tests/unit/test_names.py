"""Tests for name hierarchies and their serialized form."""

import pytest

from trailwriter.core.exceptions import InvalidNameError
from trailwriter.core.models import NameElement, NameHierarchy
from trailwriter.core.names import decode_name, encode_name, encode_range


class TestNameHierarchy:
    """Tests for the NameHierarchy value type."""

    def test_empty_hierarchy_rejected(self) -> None:
        """A hierarchy needs at least one element."""
        with pytest.raises(InvalidNameError):
            NameHierarchy("::", ())

    def test_of_and_qualified_name(self) -> None:
        """Bare names are joined with the delimiter."""
        hierarchy = NameHierarchy.of("::", "ns", "Outer", "inner")
        assert len(hierarchy) == 3
        assert hierarchy.qualified_name == "ns::Outer::inner"
        assert hierarchy.leaf == NameElement("inner")

    def test_append_returns_new_hierarchy(self) -> None:
        """Appending never mutates the original."""
        outer = NameHierarchy.of(".", "pkg")
        inner = outer.append(NameElement("Cls"))
        assert len(outer) == 1
        assert inner.qualified_name == "pkg.Cls"

    def test_parent(self) -> None:
        """Parent drops the innermost element; a top-level name has none."""
        hierarchy = NameHierarchy.of("::", "A", "B")
        assert hierarchy.parent() == NameHierarchy.of("::", "A")
        assert NameHierarchy.of("::", "A").parent() is None


class TestEncodeName:
    """Tests for serializing names."""

    def test_single_element(self) -> None:
        """A single element has no element separator."""
        assert encode_name(NameHierarchy.of("::", "A")) == "::\tmA\ts\tp"

    def test_prefix_and_postfix(self) -> None:
        """Prefix and postfix are written after their markers."""
        hierarchy = NameHierarchy(
            "::", (NameElement("A"), NameElement("foo", prefix="void", postfix="(int)"))
        )
        assert encode_name(hierarchy) == "::\tmA\ts\tp\tnfoo\tsvoid\tp(int)"

    def test_tab_in_name_is_escaped(self) -> None:
        """A literal TAB inside a component cannot be mistaken for a marker."""
        hierarchy = NameHierarchy("::", (NameElement("a\tb"),))
        assert encode_name(hierarchy) == "::\tma\ttb\ts\tp"

    def test_encode_range(self) -> None:
        """A slice of the hierarchy serializes on its own."""
        hierarchy = NameHierarchy.of(".", "a", "b", "c")
        assert encode_range(hierarchy, 1, 3) == ".\tmb\ts\tp\tnc\ts\tp"

    def test_encode_range_out_of_bounds(self) -> None:
        """Empty or out-of-bounds slices are rejected."""
        hierarchy = NameHierarchy.of(".", "a")
        with pytest.raises(InvalidNameError):
            encode_range(hierarchy, 0, 2)
        with pytest.raises(InvalidNameError):
            encode_range(hierarchy, 1, 1)


class TestDecodeName:
    """Tests for parsing serialized names."""

    @pytest.mark.parametrize(
        "hierarchy",
        [
            NameHierarchy.of("::", "A"),
            NameHierarchy("::", (NameElement("A"), NameElement("m", "void", "()"))),
            NameHierarchy("/", (NameElement("/tmp/src/main.cpp"),)),
            NameHierarchy(".", (NameElement("x\ty", "\t", "p\t"),)),
            NameHierarchy("\t", (NameElement(""), NameElement("b"))),
        ],
    )
    def test_decode_inverts_encode(self, hierarchy: NameHierarchy) -> None:
        """Decoding a serialized name gives back the same hierarchy."""
        assert decode_name(encode_name(hierarchy)) == hierarchy

    @pytest.mark.parametrize(
        "serialized",
        [
            "",
            "plain",
            "::\tmA\ts",
            "::\tmA\tx\tp",
            "::\tmA\ts\tp\t",
            "::\tmA\ts\tp\tnB",
            "::\tsA\tm\tp",
        ],
    )
    def test_malformed_input(self, serialized: str) -> None:
        """Malformed strings raise InvalidNameError instead of guessing."""
        with pytest.raises(InvalidNameError):
            decode_name(serialized)
