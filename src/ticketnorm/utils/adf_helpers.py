"""Conversion of Markdown text to ADF (Atlassian Document Format)."""

import logging
import re

from markdown_it import MarkdownIt
from markdown_it.token import Token
from mdit_py_plugins.tasklists import tasklists_plugin

from ticketnorm.constants import LOGGER_NAME
from ticketnorm.document import (
    AdfMark,
    AdfNode,
    MarkType,
    NodeType,
    block,
    doc,
    mark,
    sort_marks,
    text as text_node,
)

logger = logging.getLogger(LOGGER_NAME)

TASK_CHECKBOX_PREFIX = '<input class="task-list-item-checkbox"'

JIRA_WIKI_PATTERNS = [
    (re.compile(r'^h[1-6]\.', re.MULTILINE), 'h1., h2., etc. headings (use # Heading)'),
    (re.compile(r'\{\{[^}]+\}\}'), '{{code}} inline code (use `code`)'),
    (re.compile(r'\{noformat\}'), '{noformat} blocks (use ``` fences)'),
    (re.compile(r'\{code[^}]*\}'), '{code} blocks (use ``` fences)'),
    (re.compile(r'\{quote\}'), '{quote} blocks (use > quote)'),
    (re.compile(r'\{color:[^}]+\}'), '{color} formatting (not supported in Markdown)'),
    (re.compile(r'^\*\s+'), '* bullet lists (use - instead)'),
    (re.compile(r'^#\s+[^#]'), '# numbered lists (use 1. instead)'),
]
"""Jira wiki markup that users and agents tend to write instead of Markdown."""


def _markdown_parser() -> MarkdownIt:
    md = MarkdownIt('gfm-like')
    md.use(tasklists_plugin)
    if md.linkify is not None:
        # only explicit URLs become links; README.md or user@example.com stay literal text
        md.linkify.set({'fuzzy_link': False, 'fuzzy_email': False})
    return md


def text_to_adf(text: str, track_warnings: bool = False) -> dict | tuple[dict, list[str]]:
    """Convert markdown text to ADF (Atlassian Document Format).

    Uses markdown-it-py with GitHub Flavored Markdown (GFM) preset to parse markdown into an AST,
    then converts to ADF structure. Malformed markdown never raises; it degrades to the closest structure and
    syntax that is not recognized is kept as literal text.

    Args:
        text: Markdown or plain text string
        track_warnings: If True, returns tuple of (adf_dict, warnings_list)

    Returns:
        ADF document structure, or tuple of (ADF document, list of warning messages) if track_warnings=True
    """
    if not text or not text.strip():
        result = doc().to_dict()
        return (result, []) if track_warnings else result

    tokens = _markdown_parser().parse(text)
    result = doc(_convert_tokens_to_adf(tokens, 0, len(tokens))).to_dict()

    if track_warnings:
        warnings = _detect_malformed_markdown(tokens) + detect_jira_wiki_syntax(text)
        return result, warnings
    return result


def markdown_to_document(text: str) -> AdfNode:
    """Convert markdown text to a typed ADF document tree."""
    if not text or not text.strip():
        return doc()
    tokens = _markdown_parser().parse(text)
    return doc(_convert_tokens_to_adf(tokens, 0, len(tokens)))


def detect_jira_wiki_syntax(text: str) -> list[str]:
    """Detect Jira wiki markup in text that is about to be converted from Markdown.

    Args:
        text: the text provided by the user.

    Returns:
        A warning for every kind of wiki markup found, with the Markdown syntax to use instead.
    """
    return [
        f'Jira wiki syntax detected: {description}'
        for pattern, description in JIRA_WIKI_PATTERNS
        if pattern.search(text)
    ]


def _find_closing_token(tokens: list[Token], open_index: int) -> int:
    depth = 0
    for index in range(open_index, len(tokens)):
        depth += tokens[index].nesting
        if depth == 0:
            return index
    return len(tokens) - 1


def _child_ranges(tokens: list[Token], start: int, end: int, open_type: str) -> list[tuple[int, int]]:
    """Return the (open, close) indices of the direct children of type `open_type` in tokens[start:end]."""
    ranges = []
    i = start
    while i < end:
        if tokens[i].type == open_type:
            close = _find_closing_token(tokens, i)
            ranges.append((i, close))
            i = close + 1
        else:
            i += 1
    return ranges


def _inline_children(tokens: list[Token], start: int, end: int) -> list[Token]:
    for index in range(start, end):
        if tokens[index].type == 'inline':
            return tokens[index].children or []
    return []


def _convert_tokens_to_adf(tokens: list[Token], start: int, end: int) -> list[AdfNode]:
    """Convert the block tokens in tokens[start:end] to ADF content nodes."""
    content: list[AdfNode] = []
    i = start

    while i < end:
        token = tokens[i]

        if token.type == 'heading_open':
            close = _find_closing_token(tokens, i)
            level = int(token.tag[1])
            heading_content = _convert_inline_tokens(_inline_children(tokens, i + 1, close))
            content.append(block(NodeType.HEADING, heading_content, level=level))
            i = close + 1

        elif token.type == 'paragraph_open':
            close = _find_closing_token(tokens, i)
            paragraph_content = _convert_inline_tokens(_inline_children(tokens, i + 1, close))
            if paragraph_content:
                content.append(block(NodeType.PARAGRAPH, paragraph_content))
            i = close + 1

        elif token.type == 'blockquote_open':
            close = _find_closing_token(tokens, i)
            content.append(block(NodeType.BLOCKQUOTE, _convert_tokens_to_adf(tokens, i + 1, close)))
            i = close + 1

        elif token.type == 'bullet_list_open':
            close = _find_closing_token(tokens, i)
            if _is_task_list(tokens, i, close):
                content.append(_convert_task_list_tokens(tokens, i, close))
            else:
                content.append(
                    block(NodeType.BULLET_LIST, _convert_list_tokens(tokens, i, close))
                )
            i = close + 1

        elif token.type == 'ordered_list_open':
            close = _find_closing_token(tokens, i)
            ordered_list = block(NodeType.ORDERED_LIST, _convert_list_tokens(tokens, i, close))
            start_number = token.attrGet('start')
            if start_number is not None and int(start_number) != 1:
                ordered_list.attrs = {'order': int(start_number)}
            content.append(ordered_list)
            i = close + 1

        elif token.type in ('fence', 'code_block'):
            content.append(_convert_code_block_token(token))
            i += 1

        elif token.type == 'hr':
            content.append(AdfNode(type=NodeType.RULE.value))
            i += 1

        elif token.type == 'table_open':
            close = _find_closing_token(tokens, i)
            content.append(_convert_table_tokens(tokens, i, close))
            i = close + 1

        elif token.type == 'html_block':
            raw_html = token.content.rstrip('\n')
            if raw_html:
                content.append(block(NodeType.PARAGRAPH, [text_node(raw_html)]))
            i += 1

        else:
            i += 1

    return content


def _convert_code_block_token(token: Token) -> AdfNode:
    code = token.content
    if code.endswith('\n'):
        code = code[:-1]

    code_block = block(NodeType.CODE_BLOCK, [text_node(code)] if code else [])
    language = token.info.strip().split()[0] if token.type == 'fence' and token.info.strip() else ''
    if language:
        code_block.attrs = {'language': language}
    return code_block


def _convert_list_tokens(tokens: list[Token], start: int, close: int) -> list[AdfNode]:
    """Convert the items of the list opened at tokens[start] to ADF listItem nodes."""
    list_items = []
    for item_open, item_close in _child_ranges(tokens, start + 1, close, 'list_item_open'):
        item_content = _convert_tokens_to_adf(tokens, item_open + 1, item_close)
        if not item_content:
            item_content = [block(NodeType.PARAGRAPH)]
        list_items.append(block(NodeType.LIST_ITEM, item_content))
    return list_items


def _is_task_list(tokens: list[Token], start: int, close: int) -> bool:
    """Check if a bullet list is a task list using tasklists plugin attributes.

    The tasklists plugin adds 'class="contains-task-list"' to bullet lists with at least one task item. A list is
    only converted to an ADF task list when every one of its items is a task item.
    """
    if tokens[start].attrGet('class') != 'contains-task-list':
        return False
    item_ranges = _child_ranges(tokens, start + 1, close, 'list_item_open')
    return bool(item_ranges) and all(
        tokens[item_open].attrGet('class') == 'task-list-item' for item_open, _ in item_ranges
    )


def _convert_task_list_tokens(tokens: list[Token], start: int, close: int) -> AdfNode:
    """Convert a markdown task list to an ADF taskList.

    Nested task lists are appended to the parent taskList right after their item. Other nested blocks are
    flattened into the inline content of the task item.
    """
    task_list_content: list[AdfNode] = []

    for item_open, item_close in _child_ranges(tokens, start + 1, close, 'list_item_open'):
        task_state = 'TODO'
        item_content: list[AdfNode] = []
        nested_task_lists: list[AdfNode] = []

        i = item_open + 1
        first_paragraph = True
        while i < item_close:
            token = tokens[i]
            if token.type == 'paragraph_open' and first_paragraph:
                paragraph_close = _find_closing_token(tokens, i)
                children = _inline_children(tokens, i + 1, paragraph_close)
                if children and children[0].type == 'html_inline':
                    if 'checked="checked"' in children[0].content:
                        task_state = 'DONE'
                    children = children[1:]
                item_content.extend(_convert_inline_tokens(children, strip_leading=True))
                first_paragraph = False
                i = paragraph_close + 1
            elif token.type == 'bullet_list_open' and _is_task_list(
                tokens, i, _find_closing_token(tokens, i)
            ):
                nested_close = _find_closing_token(tokens, i)
                nested_task_lists.append(_convert_task_list_tokens(tokens, i, nested_close))
                i = nested_close + 1
            elif token.nesting == 1 or token.nesting == 0:
                nested_close = _find_closing_token(tokens, i) if token.nesting == 1 else i
                nested_inline = _flatten_inline(_convert_tokens_to_adf(tokens, i, nested_close + 1))
                if nested_inline:
                    if item_content:
                        item_content.append(AdfNode(type=NodeType.HARD_BREAK.value))
                    item_content.extend(nested_inline)
                i = nested_close + 1
            else:
                i += 1

        task_list_content.append(
            AdfNode(
                type=NodeType.TASK_ITEM.value,
                attrs={'localId': '', 'state': task_state},
                content=item_content,
            )
        )
        task_list_content.extend(nested_task_lists)

    return AdfNode(type=NodeType.TASK_LIST.value, attrs={'localId': ''}, content=task_list_content)


def _flatten_inline(nodes: list[AdfNode]) -> list[AdfNode]:
    """Collect the inline nodes of a list of blocks, separating blocks with hard breaks."""
    inline: list[AdfNode] = []
    for node in nodes:
        if node.is_text or node.kind == NodeType.HARD_BREAK:
            inline.append(node)
            continue
        nested = _flatten_inline(node.children)
        if nested:
            if inline:
                inline.append(AdfNode(type=NodeType.HARD_BREAK.value))
            inline.extend(nested)
    return inline


def _convert_table_tokens(tokens: list[Token], start: int, close: int) -> AdfNode:
    """Convert markdown table tokens to ADF table nodes.

    Header cells become `tableHeader` nodes and body cells become `tableCell` nodes.
    """
    table_rows = []

    for row_open, row_close in _child_ranges(tokens, start + 1, close, 'tr_open'):
        row_cells = []
        i = row_open + 1
        while i < row_close:
            token = tokens[i]
            if token.type in ('th_open', 'td_open'):
                cell_close = _find_closing_token(tokens, i)
                cell_content = _convert_inline_tokens(_inline_children(tokens, i + 1, cell_close))
                cell_type = NodeType.TABLE_HEADER if token.type == 'th_open' else NodeType.TABLE_CELL
                row_cells.append(block(cell_type, [block(NodeType.PARAGRAPH, cell_content)]))
                i = cell_close + 1
            else:
                i += 1

        if row_cells:
            table_rows.append(block(NodeType.TABLE_ROW, row_cells))

    return block(NodeType.TABLE, table_rows)


def _append_text(content: list[AdfNode], value: str, marks: list[AdfMark]) -> None:
    if not value:
        return
    sorted_marks = sort_marks(marks)
    previous = content[-1] if content else None
    if previous is not None and previous.is_text and (previous.marks or []) == sorted_marks:
        previous.text = (previous.text or '') + value
        return
    content.append(text_node(value, sorted_marks))


def _remove_mark(active_marks: list[AdfMark], kind: MarkType) -> None:
    for index in range(len(active_marks) - 1, -1, -1):
        if active_marks[index].kind == kind:
            del active_marks[index]
            return


def _convert_inline_tokens(tokens: list[Token], strip_leading: bool = False) -> list[AdfNode]:
    """Convert markdown-it inline tokens to ADF text nodes with marks.

    Nested emphasis accumulates marks. Adjacent text with identical marks is merged into a single text node.

    Args:
        tokens: List of markdown-it inline Token objects
        strip_leading: If True, leading whitespace of the first text is removed

    Returns:
        List of ADF inline nodes
    """
    content: list[AdfNode] = []
    active_marks: list[AdfMark] = []
    toggles = {
        'strong_open': MarkType.STRONG,
        'em_open': MarkType.EM,
        's_open': MarkType.STRIKE,
    }
    closers = {
        'strong_close': MarkType.STRONG,
        'em_close': MarkType.EM,
        's_close': MarkType.STRIKE,
    }

    for token in tokens:
        if token.type in ('text', 'text_special'):
            value = token.content
            if strip_leading and not content:
                value = value.lstrip()
            _append_text(content, value, active_marks)

        elif token.type in toggles:
            active_marks.append(mark(toggles[token.type]))

        elif token.type in closers:
            _remove_mark(active_marks, closers[token.type])

        elif token.type == 'code_inline':
            _append_text(content, token.content, active_marks + [mark(MarkType.CODE)])

        elif token.type == 'link_open':
            active_marks.append(mark(MarkType.LINK, {'href': token.attrGet('href') or ''}))

        elif token.type == 'link_close':
            _remove_mark(active_marks, MarkType.LINK)

        elif token.type in ('softbreak', 'hardbreak'):
            content.append(AdfNode(type=NodeType.HARD_BREAK.value))

        elif token.type == 'html_inline' and token.content.startswith(TASK_CHECKBOX_PREFIX):
            # a checkbox outside of a task list: keep the marker the user typed
            checkbox = '[x]' if 'checked="checked"' in token.content else '[ ]'
            _append_text(content, checkbox, active_marks)

        elif token.type == 'image':
            alt_text = ''.join(child.content for child in token.children or [])
            _append_text(content, f'![{alt_text}]({token.attrGet("src") or ""})', active_marks)

        elif token.content:
            logger.debug('Keeping unsupported inline markdown as text', extra={'type': token.type})
            _append_text(content, token.content, active_marks)

    return content


def _detect_malformed_markdown(tokens: list[Token]) -> list[str]:
    """Detect malformed Markdown by analyzing what markdown-it-py parsed as plain text.

    Args:
        tokens: Already-parsed tokens from markdown-it-py

    Returns:
        List of warning messages for detected malformed syntax
    """
    warnings = []

    for index, token in enumerate(tokens):
        line_num = token.map[0] + 1 if token.map else None
        if not line_num:
            continue

        if token.type == 'inline' and token.children:
            for child in token.children:
                if child.type != 'text' or not child.content:
                    continue
                text_content = child.content

                if text_content.count('**') % 2 != 0:
                    warnings.append(
                        f'Line {line_num}: Unclosed bold marker (**) in "{text_content[:50]}"'
                    )

                if text_content.count('`') % 2 != 0:
                    warnings.append(
                        f'Line {line_num}: Unclosed code marker (`) in "{text_content[:50]}"'
                    )

                if re.search(r'!\[[^\]]*$', text_content):
                    warnings.append(
                        f'Line {line_num}: Incomplete image syntax in "{text_content[:50]}"'
                    )

                if re.search(r'\[[^\]]+\](?!\()', text_content) and not re.match(
                    r'^-?\s*\[([ xX])\](\s|$)', text_content.strip()
                ):
                    warnings.append(
                        f'Line {line_num}: Incomplete link syntax - missing URL in "{text_content[:50]}"'
                    )

        if token.type == 'paragraph_open' and index + 1 < len(tokens):
            inline_content = tokens[index + 1].content.strip()
            if re.match(r'^(-{3,}|_{3,}|\*{3,})[^\s\-_*]', inline_content):
                warnings.append(
                    f'Line {line_num}: Malformed horizontal rule - "{inline_content}" '
                    f'(should be "---", "***", or "___" alone on a line)'
                )

    return warnings
