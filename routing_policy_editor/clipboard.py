"""
Copy/paste of node selections.

Only edges whose two endpoints are both in the copied selection travel with
it. Pasted nodes get fresh ids so a clipboard can be pasted any number of
times into the same document.
"""

import copy
import logging
import uuid
from typing import Dict, List, Optional

from .document import GraphDocument
from .models import ClipboardContents


def make_copy_id(original_id: str) -> str:
    """Strictly unique id for a pasted copy of ``original_id``."""
    return f"{original_id}-copy-{uuid.uuid4().hex}"


class ClipboardManager:
    """Clipboard bound to one graph document."""

    def __init__(self, document: GraphDocument):
        self.document = document
        self.contents = ClipboardContents()
        self.logger = logging.getLogger(__name__)

    def has_contents(self) -> bool:
        return not self.contents.is_empty()

    def copy_selection(self) -> int:
        """Capture the selected nodes and the edges internal to them.

        Returns the number of nodes copied.
        """
        nodes = self.document.selection.selected_nodes(self.document)
        node_ids = {node.id for node in nodes}
        edges = [
            edge for edge in self.document.edges
            if edge.source in node_ids and edge.target in node_ids
        ]
        self.contents = ClipboardContents(
            nodes=copy.deepcopy(nodes),
            edges=copy.deepcopy(edges),
        )
        self.logger.debug(f"Copied {len(nodes)} node(s) and {len(edges)} edge(s)")
        return len(nodes)

    def paste_from_clipboard(self, offset_x: Optional[float] = None,
                             offset_y: Optional[float] = None) -> List[str]:
        """Paste the clipboard shifted by the offset; returns the new node ids.

        An empty clipboard is a silent no-op.
        """
        if self.contents.is_empty():
            return []

        settings = self.document.settings
        if offset_x is None:
            offset_x = settings.paste_offset_x
        if offset_y is None:
            offset_y = settings.paste_offset_y

        id_map: Dict[str, str] = {}
        new_nodes = []
        for original in self.contents.nodes:
            node = copy.deepcopy(original)
            node.id = make_copy_id(original.id)
            node.position = original.moved_by(offset_x, offset_y)
            node.selected = True
            id_map[original.id] = node.id
            new_nodes.append(node)

        # Parents that were copied along are remapped; others keep their link
        for node in new_nodes:
            if node.parent_id in id_map:
                node.parent_id = id_map[node.parent_id]

        new_edges = []
        for original in self.contents.edges:
            edge = copy.deepcopy(original)
            edge.id = make_copy_id(original.id)
            edge.source = id_map[original.source]
            edge.target = id_map[original.target]
            new_edges.append(edge)

        return self.document.insert_subgraph(new_nodes, new_edges, select=True)

    def clear(self):
        self.contents = ClipboardContents()
