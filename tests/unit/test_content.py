"""Tests for the description and comment text helpers."""

import pytest

from clubhouse_migration.utils.content import (
    author_prefix,
    build_footer,
    cover_image,
    import_note,
    milestone_epic_name,
    normalize_color,
    post_process_images,
    reporter_note,
    trello_color,
)

pytestmark = pytest.mark.unit


def test_image_with_alt_text_keeps_description():
    content = 'Before <img width="300" alt="screenshot" src="https://user-images.githubusercontent.com/1/abc.png"> after'

    assert post_process_images(content) == (
        "Before ![screenshot](https://user-images.githubusercontent.com/1/abc.png) after"
    )


def test_image_without_alt_uses_last_url_segment():
    content = '<img src="https://user-images.githubusercontent.com/1/capture.png">'

    assert post_process_images(content) == "![capture.png](https://user-images.githubusercontent.com/1/capture.png)"


def test_image_without_alt_and_without_path_falls_back_to_default_name():
    assert post_process_images('<img src="">') == "![image.png]()"


def test_several_images_in_one_body():
    content = (
        "First\n"
        '<img width="512" alt="one" src="https://example.com/1.png">\n'
        "Second\n"
        '<img alt="two" src="https://example.com/2.png">'
    )

    assert post_process_images(content) == (
        "First\n![one](https://example.com/1.png)\nSecond\n![two](https://example.com/2.png)"
    )


def test_text_without_images_is_unchanged():
    assert post_process_images("plain **markdown**") == "plain **markdown**"


@pytest.mark.parametrize("content", [None, ""])
def test_empty_content(content):
    assert post_process_images(content) == ""


@pytest.mark.parametrize(
    ("title", "expected"),
    [
        ("V 4.2.0", "4.2.0 Enhancements"),
        ("V 10.1", "10.1 Enhancements"),
        ("Backlog", "Backlog"),
        ("V4.2.0", "V4.2.0"),
        ("Version 4.2", "Version 4.2"),
    ],
)
def test_milestone_epic_name(title, expected):
    assert milestone_epic_name(title) == expected


def test_colors():
    assert normalize_color("fc2929") == "#fc2929"
    assert normalize_color("#fc2929") == "#fc2929"
    assert normalize_color(None) is None
    assert trello_color("green") == "#61bd4f"
    assert trello_color("sky") == "#00c2e0"
    assert trello_color(None) is None


def test_footer_lists_notes_between_rules():
    footer = build_footer(
        [
            import_note("Github", "issue", "42", "https://github.com/acme/widgets/issues/42"),
            reporter_note("Carol"),
        ],
    )

    assert footer.startswith("\n\n---\n\n#### Migration notes\n\n")
    assert "* This card has been imported from Github issue [#42](https://github.com/acme/widgets/issues/42)" in footer
    assert "* Originally reported by **Carol**" in footer
    assert footer.endswith("\n\n---\n\n")


def test_cover_and_author_prefix():
    assert cover_image("cover.png", "https://x/cover.png") == "![cover.png](https://x/cover.png)\n\n"
    assert cover_image(None, "https://x/c.png") == "![](https://x/c.png)\n\n"
    assert author_prefix("Carol", "Looks good") == "**Carol:** Looks good"
    assert author_prefix(None, "Looks good") == "Looks good"
