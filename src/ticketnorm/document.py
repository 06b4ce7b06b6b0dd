"""Typed representation of Atlassian Document Format (ADF) trees.

Both converters work on `AdfNode` trees. `AdfNode.from_dict` validates the wire shape returned by the API and
`AdfNode.to_dict` produces the shape expected in request bodies.
"""

from __future__ import annotations

from dataclasses import dataclass
from enum import Enum
from typing import Any

from ticketnorm.constants import ADF_VERSION
from ticketnorm.exceptions import DocumentStructureException


class NodeType(Enum):
    DOC = 'doc'
    PARAGRAPH = 'paragraph'
    HEADING = 'heading'
    TEXT = 'text'
    HARD_BREAK = 'hardBreak'
    CODE_BLOCK = 'codeBlock'
    BULLET_LIST = 'bulletList'
    ORDERED_LIST = 'orderedList'
    LIST_ITEM = 'listItem'
    TABLE = 'table'
    TABLE_ROW = 'tableRow'
    TABLE_CELL = 'tableCell'
    TABLE_HEADER = 'tableHeader'
    BLOCKQUOTE = 'blockquote'
    RULE = 'rule'
    TASK_LIST = 'taskList'
    TASK_ITEM = 'taskItem'
    MEDIA_GROUP = 'mediaGroup'
    MEDIA_SINGLE = 'mediaSingle'
    MEDIA = 'media'
    INLINE_CARD = 'inlineCard'
    BLOCK_CARD = 'blockCard'
    EMBED_CARD = 'embedCard'
    MENTION = 'mention'
    EMOJI = 'emoji'


class MarkType(Enum):
    STRONG = 'strong'
    EM = 'em'
    CODE = 'code'
    STRIKE = 'strike'
    LINK = 'link'
    UNDERLINE = 'underline'
    TEXT_COLOR = 'textColor'


BLOCK_NODE_TYPES = frozenset(
    {
        NodeType.PARAGRAPH,
        NodeType.HEADING,
        NodeType.CODE_BLOCK,
        NodeType.BULLET_LIST,
        NodeType.ORDERED_LIST,
        NodeType.TABLE,
        NodeType.BLOCKQUOTE,
        NodeType.RULE,
        NodeType.TASK_LIST,
        NodeType.MEDIA_GROUP,
        NodeType.MEDIA_SINGLE,
        NodeType.BLOCK_CARD,
        NodeType.EMBED_CARD,
    }
)
"""Node types rendered as standalone blocks."""

MARK_ORDER = [
    MarkType.LINK,
    MarkType.STRONG,
    MarkType.EM,
    MarkType.STRIKE,
    MarkType.CODE,
    MarkType.UNDERLINE,
    MarkType.TEXT_COLOR,
]
"""Canonical order of marks, outermost first."""


def _node_type_of(value: str) -> NodeType | None:
    try:
        return NodeType(value)
    except ValueError:
        return None


def _mark_type_of(value: str) -> MarkType | None:
    try:
        return MarkType(value)
    except ValueError:
        return None


@dataclass
class AdfMark:
    type: str
    attrs: dict[str, Any] | None = None

    @property
    def kind(self) -> MarkType | None:
        return _mark_type_of(self.type)

    @classmethod
    def from_dict(cls, data: Any) -> AdfMark:
        if not isinstance(data, dict) or not isinstance(data.get('type'), str):
            raise DocumentStructureException('ADF marks must be objects with a "type"')
        attrs = data.get('attrs')
        if attrs is not None and not isinstance(attrs, dict):
            raise DocumentStructureException(f'Invalid attrs in mark "{data["type"]}"')
        return cls(type=data['type'], attrs=attrs)

    def to_dict(self) -> dict:
        mark: dict[str, Any] = {'type': self.type}
        if self.attrs is not None:
            mark['attrs'] = self.attrs
        return mark


@dataclass
class AdfNode:
    """A node of an ADF document.

    Only `text` nodes carry `text` and `marks`; every other node carries `content`. Node types outside of
    `NodeType` are kept as-is so that documents produced by newer editors can still be walked.
    """

    type: str
    content: list[AdfNode] | None = None
    text: str | None = None
    attrs: dict[str, Any] | None = None
    marks: list[AdfMark] | None = None
    version: int | None = None

    @property
    def kind(self) -> NodeType | None:
        return _node_type_of(self.type)

    @property
    def is_text(self) -> bool:
        return self.kind == NodeType.TEXT

    @property
    def children(self) -> list[AdfNode]:
        return self.content or []

    def attr(self, name: str, default: Any = None) -> Any:
        if not self.attrs:
            return default
        value = self.attrs.get(name)
        return default if value is None else value

    @classmethod
    def from_dict(cls, data: Any) -> AdfNode:
        if not isinstance(data, dict):
            raise DocumentStructureException('ADF nodes must be objects')
        node_type = data.get('type')
        if not isinstance(node_type, str) or not node_type:
            raise DocumentStructureException('ADF nodes must have a "type"')

        raw_content = data.get('content')
        if raw_content is not None and not isinstance(raw_content, list):
            raise DocumentStructureException(f'The content of node "{node_type}" must be a list')
        attrs = data.get('attrs')
        if attrs is not None and not isinstance(attrs, dict):
            raise DocumentStructureException(f'Invalid attrs in node "{node_type}"')
        raw_marks = data.get('marks')
        if raw_marks is not None and not isinstance(raw_marks, list):
            raise DocumentStructureException(f'The marks of node "{node_type}" must be a list')

        text = data.get('text')
        if node_type == NodeType.TEXT.value:
            if raw_content:
                raise DocumentStructureException('Text nodes can not have content')
            if text is not None and not isinstance(text, str):
                raise DocumentStructureException('The text of a text node must be a string')
        elif text is not None:
            raise DocumentStructureException(f'Node "{node_type}" can not carry text')

        return cls(
            type=node_type,
            content=[cls.from_dict(child) for child in raw_content]
            if raw_content is not None
            else None,
            text=text,
            attrs=attrs,
            marks=[AdfMark.from_dict(mark) for mark in raw_marks]
            if raw_marks is not None
            else None,
            version=data.get('version'),
        )

    def to_dict(self) -> dict:
        node: dict[str, Any] = {'type': self.type}
        if self.version is not None:
            node['version'] = self.version
        if self.attrs is not None:
            node['attrs'] = self.attrs
        if self.content is not None:
            node['content'] = [child.to_dict() for child in self.content]
        if self.text is not None:
            node['text'] = self.text
        if self.marks:
            node['marks'] = [mark.to_dict() for mark in self.marks]
        return node


def doc(content: list[AdfNode] | None = None) -> AdfNode:
    return AdfNode(type=NodeType.DOC.value, version=ADF_VERSION, content=list(content or []))


def text(value: str, marks: list[AdfMark] | None = None) -> AdfNode:
    return AdfNode(type=NodeType.TEXT.value, text=value, marks=list(marks) if marks else None)


def mark(kind: MarkType, attrs: dict[str, Any] | None = None) -> AdfMark:
    return AdfMark(type=kind.value, attrs=attrs)


def block(kind: NodeType, content: list[AdfNode] | None = None, **attrs) -> AdfNode:
    return AdfNode(type=kind.value, content=list(content or []), attrs=attrs or None)


def sort_marks(marks: list[AdfMark]) -> list[AdfMark]:
    """Sort marks in canonical order; unknown marks keep their relative order at the end."""

    def position(item: AdfMark) -> int:
        kind = item.kind
        return MARK_ORDER.index(kind) if kind is not None else len(MARK_ORDER)

    return sorted(marks, key=position)
