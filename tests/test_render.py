"""Tests for the markdown render + sanitize pipeline."""

from anansi.render import render, sanitize, to_html


class TestSafeMarkup:
    def test_emphasis(self):
        html = render("*soft* and **loud**")
        assert "<em>soft</em>" in html
        assert "<strong>loud</strong>" in html

    def test_headings(self):
        html = render("# Title\n\n## Section")
        assert "<h1>Title</h1>" in html
        assert "<h2>Section</h2>" in html

    def test_lists_and_code(self):
        html = render("- one\n- two\n\n```\nprint('hi')\n```")
        assert "<li>one</li>" in html
        assert "<code>" in html

    def test_strikethrough(self):
        assert "<del>gone</del>" in render("~~gone~~")

    def test_links_are_nofollow(self):
        html = render("[site](https://example.com)")
        assert 'href="https://example.com"' in html
        assert "nofollow" in html

    def test_empty_body(self):
        assert render("") == ""


class TestSanitization:
    def test_script_tag_removed(self):
        html = render("Hello\n\n<script>alert('pwned')</script>\n\nBye")
        assert "<script" not in html
        assert "pwned" not in html
        assert "Hello" in html
        assert "Bye" in html

    def test_inline_event_handler_removed(self):
        html = render('<p onclick="steal()">click me</p>')
        assert "onclick" not in html
        assert "steal" not in html
        assert "click me" in html

    def test_image_onerror_removed(self):
        html = render('<img src="cat.png" onerror="alert(1)">')
        assert "onerror" not in html
        assert 'src="cat.png"' in html

    def test_javascript_link_removed(self):
        html = render("[click](javascript:alert(1))")
        assert "javascript:" not in html
        assert "click" in html

    def test_iframe_removed(self):
        html = render('<iframe src="https://evil.example"></iframe>')
        assert "<iframe" not in html

    def test_style_attribute_removed(self):
        html = render('<span style="position:fixed">x</span>')
        assert "style" not in html


class TestOrdering:
    def test_markdown_output_is_unfiltered(self):
        assert "<script>" in to_html("<script>x()</script>")

    def test_render_is_sanitize_of_markdown(self):
        body = "# Hi\n\n<b onmouseover='x()'>bold</b>"
        assert render(body) == sanitize(to_html(body))

    def test_pure(self):
        body = "*same* input"
        assert render(body) == render(body)
