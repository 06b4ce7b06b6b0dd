"""Conversion of ADF (Atlassian Document Format) documents to Markdown.

The conversion never raises. Constructs without a Markdown equivalent are degraded and reported in the warnings of
the returned `ConversionResult`; an input that is not an ADF document produces an empty result with an `error`
warning.
"""

import dataclasses
import logging
import re
from typing import Any

from ticketnorm.constants import (
    CODE_BLOCK_LANGUAGE_ALIASES,
    CODE_BLOCK_LANGUAGES,
    LOGGER_NAME,
    ConversionWarningCategory,
)
from ticketnorm.document import (
    BLOCK_NODE_TYPES,
    AdfMark,
    AdfNode,
    MarkType,
    NodeType,
    sort_marks,
)
from ticketnorm.exceptions import DocumentStructureException
from ticketnorm.models import ConversionResult

logger = logging.getLogger(LOGGER_NAME)

MEDIA_PLACEHOLDER = '[Media attachment]'
ADF_TOO_DEEP_MESSAGE = 'ADF document is nested too deeply'

MEDIA_NODE_TYPES = (NodeType.MEDIA_GROUP, NodeType.MEDIA_SINGLE, NodeType.MEDIA)
CARD_NODE_TYPES = (NodeType.INLINE_CARD, NodeType.BLOCK_CARD, NodeType.EMBED_CARD)

# characters that would otherwise be read as inline Markdown
INLINE_MARKDOWN_CHARACTERS = re.compile(r'([\\`*_\[\]~])')
# block markers that would start a heading, quote, list or rule
BLOCK_MARKER_AT_LINE_START = re.compile(r'^( {0,3})([#>+=-])', re.MULTILINE)
ORDERED_MARKER_AT_LINE_START = re.compile(r'^( {0,3}\d{1,9})([.)])(?=\s|$)', re.MULTILINE)


class _Warnings:
    """Distinct warning messages grouped by category, in insertion order."""

    def __init__(self):
        self.messages: dict[str, list[str]] = {}

    def add(self, category: ConversionWarningCategory, message: str, detail: str | None = None) -> None:
        key = f'{category.value}:{detail}' if detail else category.value
        messages = self.messages.setdefault(key, [])
        if message not in messages:
            messages.append(message)


def convert_adf_to_markdown(adf: Any) -> ConversionResult:
    """Convert an ADF document to Markdown.

    Args:
        adf: the ADF document, either as the dictionary returned by the API or as an `AdfNode`.

    Returns:
        The Markdown text and the warnings collected during the conversion.
    """
    warnings = _Warnings()
    try:
        document = fold_code_block_languages(_validate_input(adf))
        markdown = _render_blocks(document.children, warnings)
    except DocumentStructureException as e:
        return _conversion_failure(str(e))
    except RecursionError:
        return _conversion_failure(ADF_TOO_DEEP_MESSAGE)
    return ConversionResult(result=markdown.strip(), warnings=warnings.messages)


def _conversion_failure(message: str) -> ConversionResult:
    logger.warning('Unable to convert ADF document', extra={'error': message})
    return ConversionResult(result='', warnings={ConversionWarningCategory.ERROR.value: [message]})


def _validate_input(adf: Any) -> AdfNode:
    if isinstance(adf, AdfNode):
        document = adf
    elif isinstance(adf, dict):
        document = AdfNode.from_dict(adf)
    else:
        raise DocumentStructureException('Input must be a valid ADF object')

    if document.kind != NodeType.DOC:
        raise DocumentStructureException('ADF must have a root "doc" node')
    return document


def _language_caption(node: AdfNode) -> str | None:
    """Return the language named by a paragraph that holds nothing but a language name."""
    if node.kind != NodeType.PARAGRAPH or len(node.children) != 1:
        return None
    child = node.children[0]
    if not child.is_text:
        return None
    caption = (child.text or '').strip().lower()
    if caption not in CODE_BLOCK_LANGUAGES:
        return None
    return CODE_BLOCK_LANGUAGE_ALIASES.get(caption, caption)


def fold_code_block_languages(node: AdfNode) -> AdfNode:
    """Fold language captions into the code block that follows them.

    Jira users often type the language of a snippet in a paragraph right above the code block, e.g. a `bash`
    paragraph followed by the script. Such paragraphs are removed and their language becomes the language of the
    code block. The input tree is left untouched.
    """
    if not node.content:
        return node

    content: list[AdfNode] = []
    index = 0
    while index < len(node.content):
        current = node.content[index]
        following = node.content[index + 1] if index + 1 < len(node.content) else None
        language = _language_caption(current)
        if language and following is not None and following.kind == NodeType.CODE_BLOCK:
            attrs = dict(following.attrs or {})
            attrs['language'] = language
            content.append(fold_code_block_languages(dataclasses.replace(following, attrs=attrs)))
            index += 2
            continue
        content.append(fold_code_block_languages(current))
        index += 1

    return dataclasses.replace(node, content=content)


def _indent(text: str, prefix: str, first_line_prefix: str | None = None) -> str:
    lines = text.split('\n')
    indented = []
    for position, line in enumerate(lines):
        if position == 0 and first_line_prefix is not None:
            indented.append(f'{first_line_prefix}{line}')
        elif line:
            indented.append(f'{prefix}{line}')
        else:
            indented.append(line)
    return '\n'.join(indented)


def _is_block(node: AdfNode) -> bool:
    return node.kind in BLOCK_NODE_TYPES


def _render_blocks(nodes: list[AdfNode], warnings: _Warnings, separator: str = '\n\n') -> str:
    rendered = (_render_node(node, warnings) for node in nodes)
    return separator.join(fragment for fragment in rendered if fragment)


def _render_inline(nodes: list[AdfNode], warnings: _Warnings) -> str:
    return ''.join(_render_node(node, warnings) for node in nodes)


def _render_node(node: AdfNode, warnings: _Warnings) -> str:
    kind = node.kind

    if kind == NodeType.TEXT:
        return _render_text(node, warnings)
    if kind == NodeType.PARAGRAPH:
        return _escape_line_starts(_render_inline(node.children, warnings))
    if kind == NodeType.HEADING:
        return _render_heading(node, warnings)
    if kind == NodeType.HARD_BREAK:
        return '\n'
    if kind == NodeType.CODE_BLOCK:
        code = ''.join(child.text or '' for child in node.children)
        return f'```{node.attr("language", "")}\n{code}\n```'
    if kind == NodeType.RULE:
        return '---'
    if kind == NodeType.BLOCKQUOTE:
        quoted = _render_blocks(node.children, warnings).split('\n')
        return '\n'.join(f'> {line}' if line else '>' for line in quoted)
    if kind in (NodeType.BULLET_LIST, NodeType.ORDERED_LIST):
        return _render_list(node, warnings)
    if kind == NodeType.LIST_ITEM:
        return _render_blocks(node.children, warnings, separator='\n')
    if kind == NodeType.TABLE:
        return _render_table(node, warnings)
    if kind == NodeType.TABLE_ROW:
        return _render_table_row([_render_table_cell(cell, warnings) for cell in node.children])
    if kind in (NodeType.TABLE_CELL, NodeType.TABLE_HEADER):
        return _render_table_cell(node, warnings)
    if kind == NodeType.TASK_LIST:
        warnings.add(ConversionWarningCategory.TASK_LIST, 'Task lists may not render exactly as in Jira')
        return _render_task_list(node, warnings)
    if kind == NodeType.TASK_ITEM:
        return _render_task_item(node, warnings)
    if kind in MEDIA_NODE_TYPES:
        return _render_media(node, warnings)
    if kind in CARD_NODE_TYPES:
        url = node.attr('url', '#')
        return f'[{url}]({url})'
    if kind == NodeType.MENTION:
        name = str(node.attr('text') or node.attr('id', ''))
        return name if name.startswith('@') else f'@{name}'
    if kind == NodeType.EMOJI:
        return str(node.attr('text') or node.attr('shortName', ''))

    warnings.add(
        ConversionWarningCategory.UNSUPPORTED_NODE,
        f'Unsupported node type: {node.type}',
        detail=node.type,
    )
    if any(_is_block(child) for child in node.children):
        return _render_blocks(node.children, warnings)
    return _render_inline(node.children, warnings)


def _render_heading(node: AdfNode, warnings: _Warnings) -> str:
    try:
        level = int(node.attr('level', 1))
    except (TypeError, ValueError):
        level = 1
    level = min(max(level, 1), 6)
    return f'{"#" * level} {_render_inline(node.children, warnings)}'


def _apply_mark(value: str, adf_mark: AdfMark, warnings: _Warnings) -> str:
    kind = adf_mark.kind
    if kind == MarkType.CODE:
        return f'`{value}`'
    if kind == MarkType.STRIKE:
        return f'~~{value}~~'
    if kind == MarkType.EM:
        return f'*{value}*'
    if kind == MarkType.STRONG:
        return f'**{value}**'
    if kind == MarkType.LINK:
        href = (adf_mark.attrs or {}).get('href') or '#'
        return f'[{value}]({href})'
    if kind == MarkType.UNDERLINE:
        warnings.add(ConversionWarningCategory.UNDERLINE, 'Underline converted to emphasis')
        return f'*{value}*'
    if kind == MarkType.TEXT_COLOR:
        warnings.add(ConversionWarningCategory.TEXT_COLOR, 'Text color formatting removed')
        return value

    warnings.add(
        ConversionWarningCategory.UNSUPPORTED_MARK,
        f'Unsupported mark type: {adf_mark.type}',
        detail=adf_mark.type,
    )
    return value


def _escape_line_starts(value: str) -> str:
    value = BLOCK_MARKER_AT_LINE_START.sub(r'\1\\\2', value)
    return ORDERED_MARKER_AT_LINE_START.sub(r'\1\\\2', value)


def _render_text(node: AdfNode, warnings: _Warnings) -> str:
    marks = sort_marks(node.marks or [])
    value = node.text or ''
    if not any(adf_mark.kind == MarkType.CODE for adf_mark in marks):
        value = INLINE_MARKDOWN_CHARACTERS.sub(r'\\\1', value)
    # innermost mark first
    for adf_mark in reversed(marks):
        value = _apply_mark(value, adf_mark, warnings)
    return value


def _render_list(node: AdfNode, warnings: _Warnings) -> str:
    items = []
    start = 1
    if node.kind == NodeType.ORDERED_LIST:
        try:
            start = int(node.attr('order', 1))
        except (TypeError, ValueError):
            start = 1

    for position, item in enumerate(node.children):
        marker = f'{start + position}. ' if node.kind == NodeType.ORDERED_LIST else '- '
        rendered = _render_node(item, warnings)
        items.append(_indent(rendered, ' ' * len(marker), first_line_prefix=marker))
    return '\n'.join(items)


def _render_task_list(node: AdfNode, warnings: _Warnings) -> str:
    lines = []
    for child in node.children:
        if child.kind == NodeType.TASK_LIST:
            lines.append(_indent(_render_task_list(child, warnings), '  ', first_line_prefix='  '))
        else:
            lines.append(_render_node(child, warnings))
    return '\n'.join(lines)


def _render_task_item(node: AdfNode, warnings: _Warnings) -> str:
    checkbox = '[x]' if node.attr('state') == 'DONE' else '[ ]'
    marker = f'- {checkbox} '
    if any(_is_block(child) for child in node.children):
        rendered = _render_blocks(node.children, warnings, separator='\n')
    else:
        rendered = _render_inline(node.children, warnings)
    return _indent(rendered, '  ', first_line_prefix=marker)


def _render_media(node: AdfNode, warnings: _Warnings) -> str:
    warnings.add(ConversionWarningCategory.MEDIA, 'Media attachments converted to placeholder')
    if node.kind != NodeType.MEDIA and node.children:
        return '\n'.join(_render_node(child, warnings) for child in node.children)
    alt = node.attr('alt')
    return f'[Media attachment: {alt}]' if alt else MEDIA_PLACEHOLDER


def _render_table_cell(node: AdfNode, warnings: _Warnings) -> str:
    paragraphs = (_render_node(child, warnings) for child in node.children)
    value = ' '.join(paragraph for paragraph in paragraphs if paragraph)
    return value.replace('\n', ' ').replace('|', '\\|')


def _render_table_row(cells: list[str]) -> str:
    return f'|{"|".join(cells)}|'


def _render_table(node: AdfNode, warnings: _Warnings) -> str:
    """Render a table, using the first row as the header.

    A table with a single row gets a blank header so that its only row renders as data. Rows shorter than the widest
    row are padded with empty cells, since Markdown drops the cells that do not fit under the header.
    """
    rows = [
        [_render_table_cell(cell, warnings) for cell in row.children]
        for row in node.children
    ]
    if not rows:
        return ''

    column_count = max(len(row) for row in rows)
    rows = [row + [''] * (column_count - len(row)) for row in rows]
    separator = _render_table_row(['---'] * column_count)
    if len(rows) == 1:
        lines = [_render_table_row([' '] * column_count), separator, _render_table_row(rows[0])]
    else:
        lines = [_render_table_row(rows[0]), separator] + [_render_table_row(row) for row in rows[1:]]
    return '\n'.join(lines)
