from ticketnorm.document import AdfNode, NodeType, block, doc, text
from ticketnorm.utils.adf_helpers import text_to_adf
from ticketnorm.utils.adf_to_markdown import convert_adf_to_markdown, fold_code_block_languages


def _doc(*content):
    return {'type': 'doc', 'version': 1, 'content': list(content)}


def _paragraph(*content):
    return {'type': 'paragraph', 'content': list(content)}


def _text(value, *marks):
    node = {'type': 'text', 'text': value}
    if marks:
        node['marks'] = list(marks)
    return node


def _list(list_type, *items, **attrs):
    node = {
        'type': list_type,
        'content': [{'type': 'listItem', 'content': [_paragraph(_text(item))]} for item in items],
    }
    if attrs:
        node['attrs'] = attrs
    return node


def _table(*rows):
    return {
        'type': 'table',
        'content': [
            {
                'type': 'tableRow',
                'content': [{'type': 'tableCell', 'content': [_paragraph(_text(cell))]} for cell in row],
            }
            for row in rows
        ],
    }


class TestAdfToMarkdownConversion:
    def test_convert_heading_and_paragraph(self):
        conversion = convert_adf_to_markdown(
            _doc(
                {'type': 'heading', 'attrs': {'level': 2}, 'content': [_text('Overview')]},
                _paragraph(_text('Hello')),
            )
        )

        assert conversion.result == '## Overview\n\nHello'
        assert conversion.warnings == {}

    def test_heading_level_is_clamped(self):
        conversion = convert_adf_to_markdown(
            _doc({'type': 'heading', 'attrs': {'level': 9}, 'content': [_text('Deep')]})
        )

        assert conversion.result == '###### Deep'

    def test_convert_marks(self):
        conversion = convert_adf_to_markdown(
            _doc(
                _paragraph(
                    _text('bold', {'type': 'strong'}),
                    _text(' '),
                    _text('italic', {'type': 'em'}),
                    _text(' '),
                    _text('old', {'type': 'strike'}),
                    _text(' '),
                    _text('docs', {'type': 'link', 'attrs': {'href': 'https://example.com'}}),
                )
            )
        )

        assert conversion.result == '**bold** *italic* ~~old~~ [docs](https://example.com)'

    def test_marks_are_applied_innermost_first(self):
        conversion = convert_adf_to_markdown(
            _doc(_paragraph(_text('x', {'type': 'code'}, {'type': 'strong'})))
        )

        assert conversion.result == '**`x`**'

    def test_hard_break_becomes_new_line(self):
        conversion = convert_adf_to_markdown(
            _doc(_paragraph(_text('one'), {'type': 'hardBreak'}, _text('two')))
        )

        assert conversion.result == 'one\ntwo'

    def test_convert_lists(self):
        conversion = convert_adf_to_markdown(
            _doc(_list('bulletList', 'a', 'b'), _list('orderedList', 'x', 'y', order=3))
        )

        assert conversion.result == '- a\n- b\n\n3. x\n4. y'

    def test_nested_list_is_indented(self):
        nested = {
            'type': 'bulletList',
            'content': [
                {
                    'type': 'listItem',
                    'content': [_paragraph(_text('parent')), _list('orderedList', 'child')],
                }
            ],
        }

        conversion = convert_adf_to_markdown(_doc(nested))

        assert conversion.result == '- parent\n  1. child'

    def test_every_blockquote_line_is_quoted(self):
        conversion = convert_adf_to_markdown(
            _doc({'type': 'blockquote', 'content': [_paragraph(_text('one')), _paragraph(_text('two'))]})
        )

        assert conversion.result == '> one\n>\n> two'

    def test_convert_code_block_and_rule(self):
        conversion = convert_adf_to_markdown(
            _doc(
                {'type': 'codeBlock', 'attrs': {'language': 'python'}, 'content': [_text('print(1)')]},
                {'type': 'rule'},
            )
        )

        assert conversion.result == '```python\nprint(1)\n```\n\n---'

    def test_convert_task_list(self):
        task_list = {
            'type': 'taskList',
            'attrs': {'localId': ''},
            'content': [
                {'type': 'taskItem', 'attrs': {'state': 'DONE'}, 'content': [_text('done')]},
                {'type': 'taskItem', 'attrs': {'state': 'TODO'}, 'content': [_text('todo')]},
            ],
        }

        conversion = convert_adf_to_markdown(_doc(task_list))

        assert conversion.result == '- [x] done\n- [ ] todo'
        assert conversion.warnings == {'task-list': ['Task lists may not render exactly as in Jira']}

    def test_convert_cards_mentions_and_emojis(self):
        conversion = convert_adf_to_markdown(
            _doc(
                _paragraph(
                    {'type': 'mention', 'attrs': {'id': '123', 'text': '@Jane Doe'}},
                    _text(' '),
                    {'type': 'emoji', 'attrs': {'shortName': ':rocket:', 'text': '🚀'}},
                    _text(' '),
                    {'type': 'inlineCard', 'attrs': {'url': 'https://example.com/PROJ-1'}},
                )
            )
        )

        assert conversion.result == '@Jane Doe 🚀 [https://example.com/PROJ-1](https://example.com/PROJ-1)'

    def test_media_is_replaced_with_placeholder(self):
        conversion = convert_adf_to_markdown(
            _doc(
                {
                    'type': 'mediaSingle',
                    'content': [{'type': 'media', 'attrs': {'alt': 'diagram.png'}}],
                },
                {'type': 'mediaGroup'},
            )
        )

        assert conversion.result == '[Media attachment: diagram.png]\n\n[Media attachment]'
        assert conversion.warnings == {'media': ['Media attachments converted to placeholder']}

    def test_unknown_node_renders_its_children(self):
        conversion = convert_adf_to_markdown(
            _doc(
                {'type': 'panel', 'attrs': {'panelType': 'info'}, 'content': [_paragraph(_text('Note'))]},
                _paragraph(_text('Status: '), {'type': 'status', 'attrs': {'text': 'DONE'}}),
            )
        )

        assert conversion.result == 'Note\n\nStatus:'
        assert conversion.warnings == {
            'unsupported-node:panel': ['Unsupported node type: panel'],
            'unsupported-node:status': ['Unsupported node type: status'],
        }

    def test_lossy_marks_are_reported(self):
        conversion = convert_adf_to_markdown(
            _doc(
                _paragraph(
                    _text('under', {'type': 'underline'}),
                    _text(' '),
                    _text('red', {'type': 'textColor', 'attrs': {'color': '#ff0000'}}),
                    _text(' '),
                    _text('x', {'type': 'subsup', 'attrs': {'type': 'sub'}}),
                )
            )
        )

        assert conversion.result == '*under* red x'
        assert conversion.warnings == {
            'underline': ['Underline converted to emphasis'],
            'text-color': ['Text color formatting removed'],
            'unsupported-mark:subsup': ['Unsupported mark type: subsup'],
        }

    def test_literal_markdown_is_escaped(self):
        conversion = convert_adf_to_markdown(
            _doc(
                _paragraph(_text('*not emphasis* and 1. [x](y)')),
                _paragraph(_text('# not a heading'), {'type': 'hardBreak'}, _text('2. not a list')),
            )
        )

        assert conversion.result == (
            '\\*not emphasis\\* and 1. \\[x\\](y)\n\n\\# not a heading\n2\\. not a list'
        )

    def test_code_is_not_escaped(self):
        conversion = convert_adf_to_markdown(_doc(_paragraph(_text('a*b_c', {'type': 'code'}))))

        assert conversion.result == '`a*b_c`'

    def test_warnings_are_not_repeated(self):
        conversion = convert_adf_to_markdown(
            _doc(
                _paragraph(_text('a', {'type': 'underline'})),
                _paragraph(_text('b', {'type': 'underline'})),
            )
        )

        assert conversion.warnings == {'underline': ['Underline converted to emphasis']}

    def test_warnings_are_identical_for_identical_input(self):
        document = _doc(
            _paragraph(_text('red', {'type': 'textColor', 'attrs': {'color': '#ff0000'}})),
            {'type': 'mediaGroup'},
            {'type': 'expand', 'content': [_paragraph(_text('hidden'))]},
        )

        first = convert_adf_to_markdown(document)
        second = convert_adf_to_markdown(document)

        assert first.warnings == second.warnings
        assert first.result == second.result


class TestAdfTables:
    def test_single_row_table_gets_blank_header(self):
        conversion = convert_adf_to_markdown(_doc(_table(['a', 'b'])))

        assert conversion.result == '| | |\n|---|---|\n|a|b|'

    def test_first_row_is_the_header(self):
        conversion = convert_adf_to_markdown(_doc(_table(['Name', 'Value'], ['a', '1'], ['b', '2'])))

        assert conversion.result == '|Name|Value|\n|---|---|\n|a|1|\n|b|2|'

    def test_pipes_in_cells_are_escaped(self):
        conversion = convert_adf_to_markdown(_doc(_table(['H'], ['a|b'])))

        assert conversion.result == '|H|\n|---|\n|a\\|b|'

    def test_rows_are_padded_to_the_widest_row(self):
        conversion = convert_adf_to_markdown(_doc(_table(['H'], ['a', 'b'], ['c'])))

        assert conversion.result == '|H||\n|---|---|\n|a|b|\n|c||'

    def test_empty_table_renders_nothing(self):
        conversion = convert_adf_to_markdown(_doc({'type': 'table', 'content': []}))

        assert conversion.result == ''

    def test_single_row_table_renders_parseable_markdown(self):
        conversion = convert_adf_to_markdown(_doc(_table(['only'])))

        adf = text_to_adf(conversion.result)

        table = adf['content'][0]
        assert table['type'] == 'table'
        body_cell = table['content'][1]['content'][0]
        assert body_cell['type'] == 'tableCell'
        assert body_cell['content'][0]['content'][0]['text'] == 'only'


class TestCodeBlockLanguages:
    def test_language_caption_is_folded_into_code_block(self):
        conversion = convert_adf_to_markdown(
            _doc(_paragraph(_text(' Bash ')), {'type': 'codeBlock', 'content': [_text('ls -la')]})
        )

        assert conversion.result == '```bash\nls -la\n```'

    def test_csharp_alias(self):
        conversion = convert_adf_to_markdown(
            _doc(_paragraph(_text('C#')), {'type': 'codeBlock', 'content': [_text('var x = 1;')]})
        )

        assert conversion.result == '```csharp\nvar x = 1;\n```'

    def test_caption_inside_nested_content(self):
        conversion = convert_adf_to_markdown(
            _doc(
                {
                    'type': 'blockquote',
                    'content': [_paragraph(_text('json')), {'type': 'codeBlock', 'content': [_text('{}')]}],
                }
            )
        )

        assert conversion.result == '> ```json\n> {}\n> ```'

    def test_paragraph_not_followed_by_code_block_is_kept(self):
        conversion = convert_adf_to_markdown(_doc(_paragraph(_text('python')), _paragraph(_text('rocks'))))

        assert conversion.result == 'python\n\nrocks'

    def test_unknown_language_is_kept(self):
        conversion = convert_adf_to_markdown(
            _doc(_paragraph(_text('cobol')), {'type': 'codeBlock', 'content': [_text('DISPLAY X')]})
        )

        assert conversion.result == 'cobol\n\n```\nDISPLAY X\n```'

    def test_input_tree_is_not_modified(self):
        document = doc(
            [block(NodeType.PARAGRAPH, [text('go')]), block(NodeType.CODE_BLOCK, [text('fmt.Println()')])]
        )

        folded = fold_code_block_languages(document)

        assert len(document.children) == 2
        assert document.children[1].attrs is None
        assert len(folded.children) == 1
        assert folded.children[0].attrs == {'language': 'go'}


class TestInvalidInput:
    def test_not_a_mapping(self):
        conversion = convert_adf_to_markdown('# not a document')

        assert conversion.result == ''
        assert conversion.warnings == {'error': ['Input must be a valid ADF object']}
        assert conversion.has_error

    def test_root_is_not_a_document(self):
        conversion = convert_adf_to_markdown(_paragraph(_text('x')))

        assert conversion.result == ''
        assert conversion.warnings == {'error': ['ADF must have a root "doc" node']}

    def test_malformed_tree(self):
        conversion = convert_adf_to_markdown({'type': 'doc', 'content': [{'type': 'paragraph', 'content': 'x'}]})

        assert conversion.result == ''
        assert conversion.warnings == {'error': ['The content of node "paragraph" must be a list']}

    def test_deeply_nested_document(self):
        node = _paragraph(_text('deep'))
        for _ in range(1500):
            node = {'type': 'blockquote', 'content': [node]}

        conversion = convert_adf_to_markdown(_doc(node))

        assert conversion.result == ''
        assert conversion.warnings == {'error': ['ADF document is nested too deeply']}

    def test_typed_document_is_accepted(self):
        conversion = convert_adf_to_markdown(AdfNode.from_dict(_doc(_paragraph(_text('typed')))))

        assert conversion.result == 'typed'

    def test_result_serializes_like_the_api(self):
        conversion = convert_adf_to_markdown(None)

        assert conversion.as_dict() == {'result': '', 'warnings': {'error': ['Input must be a valid ADF object']}}


class TestRoundTrip:
    def test_exact_constructs_survive_a_round_trip(self):
        original = _doc(
            {'type': 'heading', 'attrs': {'level': 2}, 'content': [_text('Overview')]},
            _paragraph(
                _text('Plain '),
                _text('bold', {'type': 'strong'}),
                _text(' and '),
                _text('italic', {'type': 'em'}),
                _text(' with '),
                _text('code', {'type': 'code'}),
                _text(' and '),
                _text('a link', {'type': 'link', 'attrs': {'href': 'https://example.com'}}),
            ),
            _list('bulletList', 'first', 'second'),
            _list('orderedList', 'one', 'two'),
            {'type': 'blockquote', 'content': [_paragraph(_text('quoted'))]},
            {'type': 'codeBlock', 'attrs': {'language': 'python'}, 'content': [_text('print("hi")')]},
            {'type': 'rule'},
        )

        markdown = convert_adf_to_markdown(original).result

        assert text_to_adf(markdown) == original

    def test_markdown_survives_a_round_trip(self):
        markdown = '# Title\n\n- a\n  - b\n\n3. c\n4. d\n\n> **quoted** text'

        assert convert_adf_to_markdown(text_to_adf(markdown)).result == markdown

    def test_literal_markdown_survives_a_round_trip(self):
        original = _doc(
            _paragraph(_text('*not emphasis* and 1. [x](y)')),
            _paragraph(_text('# not a heading')),
            _paragraph(_text('- not a list')),
            _paragraph(_text('1. not a list either')),
            _paragraph(_text('> not a quote')),
            _paragraph(_text('snake_case, ~~tilde~~, `tick` and C:\\temp')),
        )

        markdown = convert_adf_to_markdown(original).result

        assert text_to_adf(markdown) == original
