"""Tests for structured macro conversion."""

import unittest

from confluence_md.converters import PageConverter, convert_html
from confluence_md.models import ConfluencePage


def macro(name, body='', params=None):
    parts = [f'<ac:structured-macro ac:name="{name}">']
    for key, value in (params or {}).items():
        parts.append(f'<ac:parameter ac:name="{key}">{value}</ac:parameter>')
    parts.append(body)
    parts.append('</ac:structured-macro>')
    return ''.join(parts)


def rich(markup):
    return f'<ac:rich-text-body>{markup}</ac:rich-text-body>'


class TestCalloutMacros(unittest.TestCase):

    def test_warning_single_line(self):
        markdown = convert_html(macro('warning', rich('<p>Disk full</p>')))
        self.assertEqual(markdown, '> ⚠️ **Warning:** Disk full')

    def test_info_multi_line_quotes_every_line(self):
        markdown = convert_html(macro('info', rich('<p>One</p><p>Two</p>')))
        self.assertEqual(markdown, '> ℹ️ **Info:**\n> One\n>\n> Two')

    def test_empty_note(self):
        self.assertEqual(convert_html(macro('note')), '> 📝 **Note:**')

    def test_tip_with_formatting(self):
        markdown = convert_html(macro('tip', rich('<p>Use <strong>caching</strong></p>')))
        self.assertEqual(markdown, '> 💡 **Tip:** Use **caching**')

    def test_callout_separated_from_surrounding_text(self):
        markdown = convert_html('<p>Before</p>' + macro('info', rich('<p>Note this</p>')) + '<p>After</p>')
        self.assertEqual(markdown, 'Before\n\n> ℹ️ **Info:** Note this\n\nAfter')

    def test_panel_with_title(self):
        markdown = convert_html(macro('panel', rich('<p>Text</p>'), {'title': 'Heads up'}))
        self.assertEqual(markdown, '> **Heads up**\n>\n> Text')

    def test_untitled_panel_ignores_parameters_of_nested_macros(self):
        status = macro('status', params={'title': 'DONE', 'colour': 'Green'})
        markdown = convert_html(macro('panel', rich(f'<p>Body {status}</p>')))
        self.assertEqual(markdown, '> Body 🟢 **DONE**')


class TestCodeMacros(unittest.TestCase):

    def test_code_with_language(self):
        markup = macro(
            'code',
            '<ac:plain-text-body><![CDATA[print("hi")]]></ac:plain-text-body>',
            {'language': 'python'}
        )
        self.assertEqual(convert_html(markup), '```python\nprint("hi")\n```')

    def test_noformat_keeps_markup_characters(self):
        markup = macro('noformat', '<ac:plain-text-body><![CDATA[<b>not bold</b> & *raw*]]></ac:plain-text-body>')
        self.assertEqual(convert_html(markup), '```\n<b>not bold</b> & *raw*\n```')

    def test_mermaid(self):
        markup = macro('mermaid-macro', '<ac:plain-text-body><![CDATA[graph TD; A-->B]]></ac:plain-text-body>')
        self.assertEqual(convert_html(markup), '```mermaid\ngraph TD; A-->B\n```')

    def test_empty_mermaid(self):
        self.assertEqual(convert_html(macro('mermaid')), '<!-- Empty mermaid macro -->')


class TestInlineMacros(unittest.TestCase):

    def test_status_with_colour(self):
        markdown = convert_html(macro('status', params={'colour': 'Green', 'title': 'Done'}))
        self.assertEqual(markdown, '🟢 **Done**')

    def test_status_without_known_colour(self):
        markdown = convert_html(macro('status', params={'colour': 'Purple', 'title': 'Odd'}))
        self.assertEqual(markdown, '**[Odd]**')

    def test_status_without_title(self):
        self.assertEqual(convert_html(macro('status', params={'colour': 'Red'})), '')

    def test_jira_with_base_url(self):
        markdown = convert_html(macro('jira', params={'key': 'ABC-1'}), base_url='https://confluence.example.com')
        self.assertEqual(markdown, '[ABC-1](https://jira.example.com/browse/ABC-1)')

    def test_jira_without_base_url(self):
        self.assertEqual(convert_html(macro('jira', params={'key': 'ABC-1'})), 'ABC-1')

    def test_jira_without_key(self):
        self.assertEqual(convert_html(macro('jira')), '<!-- Jira issue key not found -->')

    def test_inline_macros_keep_surrounding_spaces(self):
        markup = (
            '<p><strong>Ticket</strong> '
            + macro('jira', params={'key': 'ABC-1'})
            + ' '
            + macro('status', params={'title': 'OK', 'colour': 'Green'})
            + '</p>'
        )
        self.assertEqual(convert_html(markup), '**Ticket** ABC-1 🟢 **OK**')

    def test_jira_key_not_taken_from_nested_macro(self):
        markup = macro('jira', rich(macro('jira', params={'key': 'XYZ-9'})))
        self.assertEqual(convert_html(markup), '<!-- Jira issue key not found -->')

    def test_anchor(self):
        markdown = convert_html(macro('anchor', params={'': 'Section One'}))
        self.assertEqual(markdown, '<a name=section-one></a>')

    def test_empty_anchor(self):
        self.assertEqual(convert_html(macro('anchor')), '<!-- anchor macro has no anchor -->')

    def test_view_file(self):
        markup = macro('view-file', params={'name': '<ri:attachment ri:filename="manual.pdf"/>'})
        self.assertEqual(convert_html(markup), '[manual.pdf](assets/manual.pdf)')

    def test_view_file_uses_image_folder(self):
        markup = macro('view-file', params={'name': '<ri:attachment ri:filename="manual.pdf"/>'})
        self.assertEqual(convert_html(markup, image_folder='files'), '[manual.pdf](files/manual.pdf)')


class TestStructuralMacros(unittest.TestCase):

    def test_toc(self):
        self.assertEqual(convert_html('<ac:structured-macro ac:name="toc"/>'), '[toc]')

    def test_toc_with_parameters(self):
        self.assertEqual(convert_html(macro('toc', params={'maxLevel': '2'})), '[toc]')

    def test_expand_emits_body_only(self):
        markdown = convert_html(macro('expand', rich('<p>Hidden</p>'), {'title': 'More'}))
        self.assertEqual(markdown, 'Hidden')

    def test_children(self):
        self.assertEqual(convert_html(macro('children')), '<!-- Child Pages -->')

    def test_nested_macro_inside_expand(self):
        markdown = convert_html(macro('expand', rich(macro('info', rich('<p>Inner</p>')))))
        self.assertEqual(markdown, '> ℹ️ **Info:** Inner')


class TestUnsupportedMacros(unittest.TestCase):

    def test_unknown_macro_placeholder(self):
        self.assertEqual(convert_html(macro('gadget')), '<!-- Unsupported macro: gadget -->')

    def test_unnamed_macro(self):
        markdown = convert_html('<ac:structured-macro></ac:structured-macro>')
        self.assertEqual(markdown, '<!-- Unsupported macro: unknown -->')

    def test_unknown_macro_body_not_rendered(self):
        markdown = convert_html(macro('gadget', rich('<p>secret</p>')))
        self.assertNotIn('secret', markdown)

    def test_macro_stats(self):
        page = ConfluencePage(
            id='1',
            title='Stats',
            space_key='ENG',
            content=macro('info', rich('<p>x</p>')) + macro('gadget') + macro('gadget')
        )
        stats = PageConverter().convert_page(page).macro_stats

        self.assertEqual(stats['macros_found'], 3)
        self.assertEqual(stats['macros_converted'], 1)
        self.assertEqual(stats['macros_failed'], ['gadget', 'gadget'])
        self.assertEqual(stats['by_type'], {'info': 1})


if __name__ == '__main__':
    unittest.main()
