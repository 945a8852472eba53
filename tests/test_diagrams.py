from docpublisher.utils.diagrams import (
    convert_diagram_components,
    find_diagram_image,
    has_diagram_components,
    image_placeholder_markup,
    remove_import_statements,
)


class TestFindDiagramImage:
    def test_exact_name(self, tmp_path):
        (tmp_path / 'context.png').write_bytes(b'png')

        assert find_diagram_image('context', tmp_path) == tmp_path / 'context.png'

    def test_index_view(self, tmp_path):
        (tmp_path / 'Index.png').write_bytes(b'png')

        assert find_diagram_image('index', tmp_path) == tmp_path / 'Index.png'

    def test_first_letter_case_variants(self, tmp_path):
        (tmp_path / 'ImportFlow.svg').write_bytes(b'svg')

        assert find_diagram_image('importFlow', tmp_path) == tmp_path / 'ImportFlow.svg'

    def test_png_is_preferred_over_svg(self, tmp_path):
        (tmp_path / 'context.svg').write_bytes(b'svg')
        (tmp_path / 'context.png').write_bytes(b'png')

        assert find_diagram_image('context', tmp_path) == tmp_path / 'context.png'

    def test_subdirectories(self, tmp_path):
        nested = tmp_path / 'btms' / 'views'
        nested.mkdir(parents=True)
        (nested / 'context.png').write_bytes(b'png')

        assert find_diagram_image('context', tmp_path) == nested / 'context.png'

    def test_name_containing_view_id(self, tmp_path):
        (tmp_path / 'btms-CONTEXT-view.png').write_bytes(b'png')
        (tmp_path / 'context-notes.txt').write_text('notes')

        assert find_diagram_image('context', tmp_path) == tmp_path / 'btms-CONTEXT-view.png'

    def test_not_found(self, tmp_path):
        assert find_diagram_image('context', tmp_path) is None

    def test_missing_directory(self, tmp_path):
        assert find_diagram_image('context', tmp_path / 'missing') is None


class TestConvertDiagramComponents:
    def test_views_become_placeholders(self, tmp_path):
        (tmp_path / 'context.png').write_bytes(b'png')
        content = (
            "import { LikeC4View } from 'likec4:react'\n"
            '# Context\n'
            '<LikeC4View viewId="context" />\n'
            'Text\n'
            '<LikeC4View viewId="context" browser="true"></LikeC4View>\n'
        )

        converted, placeholders = convert_diagram_components(content, tmp_path)

        assert 'import ' not in converted
        assert 'LikeC4View' not in converted
        assert converted.count(image_placeholder_markup('context')) == 2
        assert len(placeholders) == 1
        assert placeholders[0].view_id == 'context'
        assert placeholders[0].image_path == tmp_path / 'context.png'

    def test_missing_image_leaves_a_notice(self, tmp_path):
        converted, placeholders = convert_diagram_components('<LikeC4View viewId="deployment"/>', tmp_path)

        assert converted == "*Diagram for view 'deployment' not available*"
        assert placeholders == []

    def test_components_without_view_id_are_removed(self, tmp_path):
        converted, _ = convert_diagram_components('Before\n<LikeC4View />\nAfter', tmp_path)

        assert converted == 'Before\n\nAfter'

    def test_content_without_components(self, tmp_path):
        converted, placeholders = convert_diagram_components('# Plain\n', tmp_path)

        assert converted == '# Plain\n'
        assert placeholders == []


class TestDiagramHelpers:
    def test_has_diagram_components(self):
        assert has_diagram_components('<LikeC4View viewId="a"/>')
        assert not has_diagram_components('# Plain')

    def test_remove_import_statements(self):
        assert remove_import_statements("import x from 'y'\n  import z\nkeep") == 'keep'

    def test_image_placeholder_markup(self):
        assert image_placeholder_markup('context') == '<ac:image-placeholder-viewid="context"/>'
