"""Tests for app.services.scanner.PageScanner.

Documents are tokenized from literal HTML so the scanner sees exactly what it
sees in production.
"""

from app.models.report import InspectReport
from app.services.scanner import PageScanner
from app.services.tokenizer import tokenize

_PAGE = "https://x.org/p"


def _scan(html: str, url: str = _PAGE, on_link=None) -> InspectReport:
    report = InspectReport(url=url)
    return PageScanner(report, on_link=on_link).scan(tokenize([html.encode()]))


# ---------------------------------------------------------------------------
# Doctype and title
# ---------------------------------------------------------------------------

class TestDoctype:
    def test_html5(self):
        assert _scan("<!doctype html><html></html>").html_version == "HTML 5"

    def test_html401_transitional(self):
        html = (
            '<!DOCTYPE html PUBLIC "-//W3C//DTD HTML 4.01 Transitional//EN" '
            '"http://www.w3.org/TR/html4/loose.dtd"><html></html>'
        )
        assert _scan(html).html_version == "HTML 4.01 Transitional"

    def test_missing_doctype(self):
        assert _scan("<html><body>hi</body></html>").html_version == "Not defined"

    def test_empty_doctype(self):
        assert _scan("<!DOCTYPE><html></html>").html_version == "Not defined"


class TestTitle:
    def test_title(self):
        assert _scan("<head><title>My Page</title></head>").page_title == "My Page"

    def test_missing_title_keeps_default(self):
        assert _scan("<head></head>").page_title == "Not defined"

    def test_empty_title_keeps_default(self):
        assert _scan("<title></title>").page_title == "Not defined"

    def test_last_title_wins(self):
        html = "<title>First</title><body><svg><title>Second</title></svg></body>"
        assert _scan(html).page_title == "Second"

    def test_title_text_is_not_cleaned(self):
        assert _scan("<title> Spaced  Out </title>").page_title == " Spaced  Out "


# ---------------------------------------------------------------------------
# Headings
# ---------------------------------------------------------------------------

class TestHeadings:
    def test_headings_by_level_in_document_order(self):
        html = "<h1>Main</h1><h2>First</h2><h3>Deep</h3><h2>Second</h2><h2>First</h2>"
        headings = _scan(html).headings
        assert headings == {
            "h1": ["Main"],
            "h2": ["First", "Second", "First"],
            "h3": ["Deep"],
        }

    def test_all_six_levels(self):
        html = "".join(f"<h{n}>Level {n}</h{n}>" for n in range(1, 7))
        headings = _scan(html).headings
        assert sorted(headings) == ["h1", "h2", "h3", "h4", "h5", "h6"]

    def test_nested_inline_element(self):
        html = '<h2><span class="mw-headline">History  of\n Germany</span></h2>'
        assert _scan(html).headings == {"h2": ["History of Germany"]}

    def test_doubly_nested_inline_element(self):
        html = "<h3><a><em>Deep text</em></a></h3>"
        assert _scan(html).headings == {"h3": ["Deep text"]}

    def test_empty_heading_is_skipped(self):
        assert _scan("<h3></h3><h3>Real</h3>").headings == {"h3": ["Real"]}

    def test_whitespace_only_heading_is_skipped(self):
        assert _scan("<h4>  \n </h4>").headings == {}

    def test_only_first_text_node_is_used(self):
        assert _scan("<h1>Hello <b>World</b></h1>").headings == {"h1": ["Hello"]}

    def test_end_of_document_inside_heading_stops_scan(self):
        report = _scan("<title>T</title><h1>One</h1><h2><span>")
        assert report.page_title == "T"
        assert report.headings == {"h1": ["One"]}


# ---------------------------------------------------------------------------
# Login fields
# ---------------------------------------------------------------------------

class TestLoginFields:
    def test_counts_password_inputs(self):
        html = (
            '<form><input type="text" name="user">'
            '<input type="password" name="pass">'
            '<input type="password" name="confirm"></form>'
        )
        assert _scan(html).login_field_count == 2

    def test_case_insensitive(self):
        assert _scan('<INPUT TYPE="PassWord">').login_field_count == 1

    def test_self_closing_input(self):
        assert _scan('<input type="password" />').login_field_count == 1

    def test_repeated_type_attribute_counts_once(self):
        assert _scan('<input type="password" type="password">').login_field_count == 1

    def test_no_inputs(self):
        assert _scan("<p>Hello</p>").login_field_count == 0

    def test_password_word_in_text_is_ignored(self):
        assert _scan("<p>input type password</p>").login_field_count == 0


# ---------------------------------------------------------------------------
# Links
# ---------------------------------------------------------------------------

_LINKS_HTML = """
<body>
  <a href="https://go.dev">Go</a>
  <a href="#section">Jump</a>
  <a href="tel:+4712345678">Call</a>
  <a href="mailto:a@x.org">Mail</a>
  <a href="javascript:void(0)">Script</a>
  <a href="/about">About</a>
  <a href="contact">Contact</a>
  <a href="">Empty</a>
  <a name="anchor">No href</a>
</body>
"""


class TestLinks:
    def test_link_types(self):
        report = _scan(_LINKS_HTML)
        assert [(link.url, link.type) for link in report.links] == [
            ("https://go.dev", "external"),
            ("#section", "fragment"),
            ("tel:+4712345678", "telephone"),
            ("mailto:a@x.org", "email"),
            ("javascript:void(0)", "javascript"),
            ("/about", "absolute"),
            ("contact", "relative"),
        ]

    def test_link_counts(self):
        report = _scan(_LINKS_HTML)
        assert report.total_link_count == 7
        assert report.external_link_count == 4
        assert report.internal_link_count == 3
        assert report.external_link_count + report.internal_link_count == report.total_link_count
        assert report.total_link_count == len(report.links)

    def test_links_start_unprobed(self):
        assert all(link.status_code == 0 for link in _scan(_LINKS_HTML).links)

    def test_link_text(self):
        report = _scan('<a href="/x">\n  Read   more\n</a>')
        assert report.links[0].text == "Read more"

    def test_nested_link_text(self):
        report = _scan('<a href="/x"><span><b>Bold</b></span></a>')
        assert report.links[0].text == "Bold"

    def test_link_without_text(self):
        report = _scan('<a href="/x"></a><p>after</p>')
        assert report.links[0].text == ""
        assert report.total_link_count == 1

    def test_checkable_links_are_handed_over_with_rewritten_url(self):
        handed = []
        _scan(_LINKS_HTML, on_link=lambda url, link: handed.append((url, link.type)))
        assert handed == [
            ("https://go.dev", "external"),
            ("https://x.org/about", "absolute"),
            ("https://x.org/p/contact", "relative"),
        ]

    def test_callback_receives_the_recorded_link(self):
        handed = []
        report = _scan('<a href="/x">X</a>', on_link=lambda url, link: handed.append(link))
        assert handed[0] is report.links[0]

    def test_invalid_absolute_link(self):
        report = _scan('<a href="/x">X</a>', url="no-scheme-here")
        link = report.links[0]
        assert link.type == "invalid"
        assert link.status_code == 400
        assert report.internal_link_count == 1

    def test_truncated_link_is_not_recorded(self):
        report = _scan('<title>T</title><a href="/x">Done</a><a href="/y">')
        assert [link.url for link in report.links] == ["/x"]
        assert report.total_link_count == 1


class TestPartialDocuments:
    def test_empty_document(self):
        report = _scan("")
        assert report.html_version == "Not defined"
        assert report.page_title == "Not defined"
        assert report.headings == {}
        assert report.links == []
        assert report.total_link_count == 0

    def test_read_error_keeps_what_was_scanned(self):
        def chunks():
            yield b"<!doctype html><title>Kept</title><h1>Also kept</h1>"
            raise ConnectionResetError("reset")

        report = InspectReport(url=_PAGE)
        PageScanner(report).scan(tokenize(chunks()))
        assert report.html_version == "HTML 5"
        assert report.page_title == "Kept"
        assert report.headings == {"h1": ["Also kept"]}

    def test_malformed_marked_section_keeps_what_was_scanned(self):
        html = (
            "<!DOCTYPE html><title>Kept</title><h1>Head</h1>"
            "<a href='/a'>A</a><![=oops]><a href='/b'>B</a>"
        )
        report = _scan(html)
        assert report.html_version == "HTML 5"
        assert report.page_title == "Kept"
        assert report.headings == {"h1": ["Head"]}
        assert report.links[0].url == "/a"
        assert report.total_link_count == len(report.links)
