"""
trailwriter: write code-index databases for the Sourcetrail code browser.

An indexer describes the symbols it finds, how they nest and reference each
other, and where they occur; trailwriter turns that into a ``.srctrldb`` file
the browser can open.

Usage:
    from trailwriter import Session

    with Session.create("project") as session:
        file_id = session.record_file_from_disk("src/order.py", language="python")
        order = session.record_class().name("Order").location(file_id, (1, 7, 1, 11)).commit()
        ship = session.record_method().name("ship").parent(order).commit()
"""

from trailwriter.core import (
    EdgeKind,
    LocationKind,
    NameElement,
    NameHierarchy,
    NodeKind,
    Session,
    SourceRange,
)

__version__ = "0.1.0"

__all__ = [
    "Session",
    "NodeKind",
    "EdgeKind",
    "LocationKind",
    "NameElement",
    "NameHierarchy",
    "SourceRange",
    "__version__",
]
