import pytest

from cloudnotes.client.document import OBJECT_CHAR, Document, Run, plain_text, preview, word_count


def test_apply_bold_splits_runs():
    doc = Document([Run("hello world")])
    doc.apply_bold(0, 5)

    assert doc.runs == [Run("hello", bold=True), Run(" world")]
    assert doc.to_html() == "<strong>hello</strong> world"
    assert doc.text == "hello world"


def test_toggle_removes_format_when_whole_range_has_it():
    doc = Document([Run("hello", bold=True), Run(" world")])

    doc.toggle_format(0, 5, "bold")
    assert doc.runs == [Run("hello world")]

    doc.toggle_format(0, 11, "bold")
    assert doc.runs == [Run("hello world", bold=True)]


def test_toggle_on_mixed_range_sets_format():
    doc = Document([Run("ab", italic=True), Run("cd")])
    doc.toggle_format(0, 4, "italic")
    assert doc.runs == [Run("abcd", italic=True)]


def test_insert_follows_preceding_character():
    doc = Document([Run("ab", bold=True), Run("cd")])

    doc.insert_text(2, "X")
    assert doc.runs == [Run("abX", bold=True), Run("cd")]

    doc.insert_text(0, "_")
    assert doc.runs[0] == Run("_")

    doc.insert_text(len(doc), "!", underline=True)
    assert doc.formats_at(len(doc) - 1) == {
        "bold": False,
        "italic": False,
        "underline": True,
        "strikethrough": False,
    }


def test_delete_merges_neighbours():
    doc = Document.from_html("<strong>a</strong>b<strong>c</strong>")
    doc.delete_range(1, 2)
    assert doc.runs == [Run("ac", bold=True)]


def test_nested_formats_and_escaping():
    doc = Document([Run("x<y\nz", bold=True, italic=True, strikethrough=True)])
    assert doc.to_html() == "<strong><em><s>x&lt;y<br>z</s></em></strong>"


def test_from_html_reads_editor_markup():
    doc = Document.from_html("<p>Hi <b>there</b></p><p><i>x</i><br>y</p>")

    assert doc.text == "Hi there\nx\ny"
    assert doc.formats_at(3)["bold"] is True
    assert doc.formats_at(9)["italic"] is True
    assert doc.formats_at(0)["bold"] is False


def test_from_html_skips_comments_scripts_and_buttons():
    doc = Document.from_html("<i>a<!-- note --></i><script>alert(1)</script><button>x</button>")
    assert doc.runs == [Run("a", italic=True)]


def test_images_are_single_object_characters():
    doc = Document.from_html('one<img src="/images/files/alice/cat.png">two')

    assert doc.text == f"one{OBJECT_CHAR}two"
    assert doc.runs[1].image == "/images/files/alice/cat.png"

    doc.apply_bold(0, len(doc))
    assert doc.runs[1].image is not None
    assert doc.runs[1].bold is False
    assert doc.to_html() == '<strong>one</strong><img src="/images/files/alice/cat.png"><strong>two</strong>'


def test_insert_image_and_reparse():
    doc = Document([Run("ab")])
    doc.insert_image(1, "/img/a.png")

    assert len(doc) == 3
    assert Document.from_html(doc.to_html()) == doc


def test_ranges_outside_document_raise():
    doc = Document([Run("hello")])
    with pytest.raises(IndexError):
        doc.insert_text(6, "x")
    with pytest.raises(IndexError):
        doc.apply_bold(3, 1)
    with pytest.raises(IndexError):
        doc.delete_range(0, 99)


def test_unknown_format_raises():
    doc = Document([Run("hello")])
    with pytest.raises(ValueError):
        doc.apply_format(0, 1, "blink")
    with pytest.raises(ValueError):
        doc.insert_text(0, "x", blink=True)


def test_empty_markup():
    assert Document.from_html("") == Document()
    assert Document().to_html() == ""
    assert plain_text("") == ""
    assert word_count("") == 0


def test_plain_text_preview_and_word_count():
    markup = "<p>Hello <b>world</b></p><script>steal()</script>"
    assert plain_text(markup) == "Hello world"
    assert word_count(markup) == 2

    long = "<p>" + "a" * 100 + "</p>"
    assert preview(long, limit=10) == "a" * 10 + "..."
    assert preview("<b>short</b>") == "short"
