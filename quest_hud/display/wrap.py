"""Line wrapper: break display text into lines that fit the HUD.

WHY: The glasses render about 36 characters per line. Quest descriptions,
leaderboards and help texts arrive as free-form strings with intentional
paragraph breaks. They have to be broken into display lines before the
scroll scheduler can page through them.

HOW: Greedy word wrapping, one paragraph at a time. Paragraphs are the
pieces between literal newline characters; blank paragraphs survive as
empty lines so spacing in the source text is kept on the display.

RULES:
- Paragraph order and word order are never changed
- A line never exceeds max_line_length unless it is a single word that is
  longer than the budget on its own (words are never split or hyphenated)
- Runs of spaces collapse to one space at wrap points
- A blank paragraph yields one empty line, so "" and "   " both give [""]
- Never raises for string input; a non-positive budget is rejected
"""

from __future__ import annotations

DEFAULT_MAX_LINE_LENGTH = 36


def split_paragraphs(content: str) -> list[str]:
    """Split content on newlines, keeping empty paragraphs.

    Windows and old-Mac line endings are normalised first so that a
    ``\\r`` never ends up inside a display line.
    """
    normalized = content.replace("\r\n", "\n").replace("\r", "\n")
    return normalized.split("\n")


def wrap_paragraph(paragraph: str, max_line_length: int) -> list[str]:
    """Greedy-wrap a single paragraph (no newlines inside).

    Returns ``[""]`` for a blank paragraph so the caller can keep the
    paragraph break.
    """
    words = [w for w in paragraph.split(" ") if w]
    if not words:
        return [""]

    lines: list[str] = []
    current = ""
    for word in words:
        if not current:
            current = word
        elif len(current) + 1 + len(word) <= max_line_length:
            current = current + " " + word
        else:
            lines.append(current)
            current = word
    if current:
        lines.append(current)
    return lines


def wrap_text(content: str, max_line_length: int = DEFAULT_MAX_LINE_LENGTH) -> list[str]:
    """Wrap content into display lines no longer than max_line_length.

    WHY: Both the single-screen fast path and the scrolling path need the
    exact number of display lines to decide what to do, and the windows
    they render are slices of this list.

    HOW: Splits on newlines into paragraphs, greedily wraps each one with
    wrap_paragraph(), and concatenates the results in order.

    RULES:
    - Result is a fresh list; calling again gives an equal list
    - "" and "   " both give [""]
    - "a\\n\\nb" gives ["a", "", "b"]

    Args:
        content: Text to wrap. May contain newlines.
        max_line_length: Character budget per line (must be > 0).

    Returns:
        Ordered list of display lines.

    Raises:
        ValueError: If max_line_length is not positive.
    """
    if max_line_length <= 0:
        raise ValueError(
            "max_line_length must be positive, got {}".format(max_line_length)
        )

    lines: list[str] = []
    for paragraph in split_paragraphs(content):
        lines.extend(wrap_paragraph(paragraph, max_line_length))
    return lines
