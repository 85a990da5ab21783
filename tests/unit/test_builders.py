"""Tests for record builders and their state machine."""

import tempfile
from pathlib import Path

import pytest

from trailwriter.core.builders import BuilderState
from trailwriter.core.exceptions import (
    AlreadyCommittedError,
    DanglingReferenceError,
    InvalidEdgeKindError,
    InvalidLocationKindError,
    InvalidRangeError,
    MissingRequiredFieldError,
    TrailWriterError,
)
from trailwriter.core.models import EdgeKind, LocationKind, NameElement, NameHierarchy, NodeKind
from trailwriter.core.names import decode_name, encode_name
from trailwriter.core.session import Session


@pytest.fixture
def temp_dir():
    """Create a temporary directory for tests."""
    with tempfile.TemporaryDirectory() as td:
        yield Path(td)


@pytest.fixture
def session(temp_dir: Path):
    """Create a fresh database for testing."""
    s = Session.create(temp_dir / "index")
    yield s
    s.close()


@pytest.fixture
def file_id(session: Session, temp_dir: Path) -> int:
    """A recorded source file."""
    return session.record_file(temp_dir / "order.cpp", language="cpp")


def count(session: Session, table: str) -> int:
    conn = session.database.get_connection()
    return conn.execute(f"SELECT COUNT(*) FROM {table}").fetchone()[0]


class TestBuilderState:
    """Tests for builder state transitions."""

    def test_lifecycle(self, session: Session) -> None:
        """EMPTY -> CONFIGURING -> COMMITTED."""
        builder = session.record_class()
        assert builder.state is BuilderState.EMPTY
        assert builder.id is None

        builder.name("Order")
        assert builder.state is BuilderState.CONFIGURING

        node_id = builder.commit()
        assert builder.state is BuilderState.COMMITTED
        assert builder.id == node_id

    def test_commit_twice(self, session: Session) -> None:
        """A committed builder cannot be committed again."""
        builder = session.record_class().name("Order")
        builder.commit()
        with pytest.raises(AlreadyCommittedError):
            builder.commit()

    def test_setter_after_commit(self, session: Session) -> None:
        """A committed builder cannot be modified."""
        builder = session.record_class().name("Order")
        builder.commit()
        with pytest.raises(AlreadyCommittedError):
            builder.name("Other")

    def test_missing_name(self, session: Session) -> None:
        """Symbols need a name; the builder stays usable."""
        builder = session.record_class()
        with pytest.raises(MissingRequiredFieldError) as exc_info:
            builder.commit()
        assert exc_info.value.fields == ("name",)
        assert count(session, "node") == 0

        assert builder.name("Order").commit() > 0

    def test_failed_write_returns_to_configuring(self, session: Session) -> None:
        """A storage failure leaves the builder editable."""
        builder = session.record_method().name("ship").parent(999)
        with pytest.raises(DanglingReferenceError):
            builder.commit()
        assert builder.state is BuilderState.CONFIGURING
        assert count(session, "node") == 0

        parent = session.record_class().name("Order").commit()
        assert builder.parent(parent).commit() > parent


class TestSymbolBuilder:
    """Tests for SymbolBuilder."""

    def test_default_delimiter(self, session: Session) -> None:
        """Top-level names use the configured default delimiter."""
        node_id = session.record_class().name("A").commit()
        node = session.registry.get_node(node_id)
        assert node.serialized_name == "::\tmA\ts\tp"
        assert node.kind is NodeKind.CLASS

    def test_explicit_delimiter(self, session: Session) -> None:
        """An explicit delimiter overrides the default."""
        node_id = session.record_package().name("com").delimiter(".").commit()
        assert decode_name(session.registry.get_node(node_id).serialized_name).delimiter == "."

    def test_parent_builds_hierarchy_and_member_edge(self, session: Session) -> None:
        """Children extend the parent's name and get a MEMBER edge."""
        parent = session.record_class().name("Order").commit()
        child = (
            session.record_method()
            .name("ship")
            .prefix("void")
            .postfix("(int)")
            .parent(parent)
            .commit()
        )

        expected = NameHierarchy(
            "::", (NameElement("Order"), NameElement("ship", "void", "(int)"))
        )
        assert session.registry.get_node(child).serialized_name == encode_name(expected)

        conn = session.database.get_connection()
        edge = conn.execute("SELECT * FROM edge").fetchone()
        assert edge["type"] == EdgeKind.MEMBER
        assert edge["source_node_id"] == parent
        assert edge["target_node_id"] == child

    def test_locations_written_with_kinds(self, session: Session, file_id: int) -> None:
        """Staged locations are written on commit with their kinds."""
        node_id = (
            session.record_function()
            .name("main")
            .location(file_id, (3, 5, 3, 8))
            .scope_location(file_id, (3, 1, 9, 1))
            .signature_location(file_id, (3, 1, 3, 14))
            .commit()
        )
        kinds = [loc.kind for loc in session.locations.for_element(node_id)]
        assert kinds == [LocationKind.TOKEN, LocationKind.SCOPE, LocationKind.SIGNATURE]

    def test_invalid_location_writes_nothing(self, session: Session, file_id: int) -> None:
        """One bad span rejects the whole record."""
        nodes_before = count(session, "node")
        builder = (
            session.record_class()
            .name("Order")
            .location(file_id, (1, 7, 1, 11))
            .location(file_id, (5, 1, 3, 1))
        )
        with pytest.raises(InvalidRangeError):
            builder.commit()
        assert count(session, "node") == nodes_before
        assert count(session, "source_location") == 0

    def test_not_indexed_has_no_definition(self, session: Session) -> None:
        """External symbols are stored without a definition kind."""
        node_id = session.record_class().name("std::string").indexed(False).commit()
        conn = session.database.get_connection()
        row = conn.execute("SELECT 1 FROM symbol WHERE id = ?", (node_id,)).fetchone()
        assert row is None


class TestOtherBuilders:
    """Tests for local symbol, reference, unsolved reference and error builders."""

    def test_local_symbol(self, session: Session, file_id: int) -> None:
        """Local symbols dedup within a scope and carry LOCAL_SYMBOL locations."""
        first = session.record_local_symbol().name("i").scope("main").commit()
        second = (
            session.record_local_symbol()
            .name("i")
            .scope("main")
            .location(file_id, (4, 9, 4, 9))
            .commit()
        )
        assert first == second
        [loc] = session.locations.for_element(first)
        assert loc.kind is LocationKind.LOCAL_SYMBOL

    def test_reference_missing_endpoints(self, session: Session) -> None:
        """References need both a source and a target."""
        with pytest.raises(MissingRequiredFieldError) as exc_info:
            session.record_reference(EdgeKind.CALL).commit()
        assert exc_info.value.fields == ("source", "target")

    def test_ambiguous_reference(self, session: Session, file_id: int) -> None:
        """Ambiguous references get a component row and a location."""
        a = session.record_function().name("a").commit()
        b = session.record_function().name("b").commit()
        edge = (
            session.record_reference(EdgeKind.CALL)
            .source(a)
            .target(b)
            .ambiguous()
            .location(file_id, (2, 3, 2, 3))
            .commit()
        )
        assert session.edges.get(edge).kind is EdgeKind.CALL
        assert count(session, "element_component") == 1
        assert len(session.locations.for_element(edge)) == 1

    def test_unsolved_reference(self, session: Session, file_id: int) -> None:
        """Unresolved targets point at the shared placeholder node."""
        caller = session.record_function().name("main").commit()

        def unsolved() -> int:
            return (
                session.record_reference_to_unsolved_symbol()
                .source(caller)
                .reference_kind(EdgeKind.CALL)
                .location(file_id, (6, 5, 6, 9))
                .commit()
            )

        edge_id = unsolved()
        assert unsolved() == edge_id

        edge = session.edges.get(edge_id)
        target = session.registry.get_node(edge.target_id)
        assert target.kind is NodeKind.UNKNOWN
        assert decode_name(target.serialized_name).leaf.name == "unsolved symbol"
        kinds = {loc.kind for loc in session.locations.for_element(edge_id)}
        assert kinds == {LocationKind.UNSOLVED}

    def test_unsolved_reference_needs_location(self, session: Session) -> None:
        """An unsolved reference without a location is rejected."""
        caller = session.record_function().name("main").commit()
        builder = (
            session.record_reference_to_unsolved_symbol()
            .source(caller)
            .reference_kind(EdgeKind.CALL)
        )
        with pytest.raises(MissingRequiredFieldError) as exc_info:
            builder.commit()
        assert "location" in exc_info.value.fields

    def test_error(self, session: Session, file_id: int) -> None:
        """Errors are stored with an INDEXER_ERROR location."""
        error_id = (
            session.record_error()
            .message("expected ';'")
            .fatal()
            .translation_unit("order.cpp")
            .location(file_id, (10, 1, 10, 4))
            .commit()
        )
        conn = session.database.get_connection()
        row = conn.execute("SELECT * FROM error WHERE id = ?", (error_id,)).fetchone()
        assert row["message"] == "expected ';'"
        assert row["fatal"] == 1
        [loc] = session.locations.for_element(error_id)
        assert loc.kind is LocationKind.INDEXER_ERROR

    def test_error_requires_message_and_location(self, session: Session) -> None:
        """Both message and location are mandatory."""
        with pytest.raises(MissingRequiredFieldError) as exc_info:
            session.record_error().commit()
        assert exc_info.value.fields == ("message", "location")


class TestMalformedInput:
    """Malformed spans and kinds surface as library errors."""

    def test_short_span_rejected(self, session: Session, file_id: int) -> None:
        """Spans without exactly four positions are invalid ranges."""
        node = session.record_class().name("A").commit()
        with pytest.raises(InvalidRangeError):
            session.record_source_location(node, file_id, (1, 1, 1))
        with pytest.raises(InvalidRangeError):
            session.record_class().name("B").location(file_id, (1, 2))
        assert count(session, "source_location") == 0

    def test_non_integer_span_rejected(self, session: Session, file_id: int) -> None:
        """Positions must be integers."""
        node = session.record_class().name("A").commit()
        with pytest.raises(InvalidRangeError):
            session.record_symbol_location(node, file_id, ("1", 1, 1, 1))
        with pytest.raises(InvalidRangeError):
            session.record_symbol_location(node, file_id, None)

    def test_unknown_location_kind(self, session: Session, file_id: int) -> None:
        """Location kinds outside the storage table are refused."""
        node = session.record_class().name("A").commit()
        with pytest.raises(InvalidLocationKindError):
            session.record_source_location(node, file_id, (1, 1, 1, 2), 42)
        assert count(session, "source_location") == 0

    def test_unknown_reference_kind(self, session: Session) -> None:
        """Edge kinds outside the storage table are refused by both reference builders."""
        with pytest.raises(InvalidEdgeKindError):
            session.record_reference(99)
        with pytest.raises(InvalidEdgeKindError):
            session.record_reference_to_unsolved_symbol().reference_kind(99)
        assert count(session, "edge") == 0

    def test_kind_errors_share_base(self) -> None:
        """Callers can catch every kind error through the library base class."""
        assert issubclass(InvalidEdgeKindError, TrailWriterError)
        assert issubclass(InvalidLocationKindError, TrailWriterError)
