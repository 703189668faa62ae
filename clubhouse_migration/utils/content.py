"""Text helpers for turning source records into Clubhouse stories.

All functions are pure.
"""

import re

GITHUB_IMG_HTML = re.compile(
    r'<img(?P<width>\s+width="[0-9]+")?(?P<alt>\s+alt="(?P<desc>[^"]*)")?\s+src="(?P<src>[^"]*)">',
)
MILESTONE_VERSION = re.compile(r"V\s[0-9]+\..*")
DEFAULT_IMAGE_NAME = "image.png"

TRELLO_COLORS = {
    "lime": "#51e898",
    "yellow": "#f2d600",
    "purple": "#c377e0",
    "blue": "#0079bf",
    "red": "#eb5a46",
    "green": "#61bd4f",
    "orange": "#ffab4a",
    "black": "#000000",
    "sky": "#00c2e0",
    "pink": "#ff80ce",
}


def _image_markdown(match: re.Match[str]) -> str:
    src = match.group("src")
    desc = match.group("desc")
    if desc is None:
        segments = [segment for segment in src.split("/") if segment]
        desc = segments[-1] if segments else DEFAULT_IMAGE_NAME
    return f"![{desc}]({src})"


def post_process_images(content: str | None) -> str:
    """Rewrite the HTML ``<img>`` tags GitHub inserts for pasted images as markdown.

    >>> post_process_images('<img alt="shot" src="https://x/y.png">')
    '![shot](https://x/y.png)'
    """
    if not content:
        return ""
    return GITHUB_IMG_HTML.sub(_image_markdown, content)


def normalize_color(color: str | None) -> str | None:
    """Hex colour with a leading ``#`` (GitHub sends ``fc2929``)."""
    if not color:
        return None
    return color if color.startswith("#") else f"#{color}"


def trello_color(color: str | None) -> str | None:
    """Hex value of a Trello colour name."""
    if not color:
        return None
    return TRELLO_COLORS.get(color) or normalize_color(color)


def milestone_epic_name(title: str) -> str:
    """Epic name for a GitHub milestone: ``V 4.2.0`` becomes ``4.2.0 Enhancements``."""
    if MILESTONE_VERSION.fullmatch(title):
        return f"{title[2:]} Enhancements"
    return title


def import_note(source: str, kind: str, record_id: str, url: str) -> str:
    return f"* This card has been imported from {source} {kind} [#{record_id}]({url})"


def reporter_note(name: str) -> str:
    return f"* Originally reported by **{name}**"


def build_footer(notes: list[str]) -> str:
    """Migration notes block appended to every migrated description."""
    return "\n\n---\n\n#### Migration notes\n\n" + "\n\n".join(notes) + "\n\n---\n\n"


def cover_image(name: str | None, url: str) -> str:
    """Markdown image put on top of a description for a Trello cover."""
    return f"![{name or ''}]({url})\n\n"


def author_prefix(name: str | None, text: str) -> str:
    """Credit a comment author that has no Clubhouse account."""
    if not name:
        return text
    return f"**{name}:** {text}"
