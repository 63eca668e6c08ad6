"""File naming conventions for saved media.

Titles from a catalog are cleaned into file-system-safe names, and saved files
are matched back to catalog items through a loose "title key" so that a file
saved under an older cleaning convention can still be recognized.
"""

import re
import unicodedata

VIDEO_FORMATS = ("3gp", "flv", "mkv", "mp4", "webm")
AUDIO_FORMATS = ("aac", "m4a", "mp3", "ogg", "opus", "wav")
DEFAULT_VIDEO_FORMAT = "mp4"
DEFAULT_AUDIO_FORMAT = "mp3"
PARTIAL_DOWNLOAD_FORMAT = "part"
NON_ASCII_REPLACEMENT = "+"

_COMBINING_MARKS = re.compile("[\u0300-\u036f\u1dc0-\u1dff]+")
_CONTROL_CHARS = re.compile("[\x00-\x08\x0b\x0c\x0e-\x1f\x7f]")
_NON_LATIN1 = re.compile(r"[^\x00-\xff]")
_TITLE_KEY_STRIP = re.compile(r"[\W_]+")

type _Pass = tuple[tuple[str, str], ...]

# Ordered (pattern, replacement) passes; each pass ends with a strip().
_SYMBOL_PASSES: tuple[_Pass, ...] = (
    (
        (r"(?i)&amp;", "&"),
        (r"(?i)&quot;", '"'),
        (r"(?i)&(?:nbsp|#(?:32|160));", " "),
    ),
    (
        ("×", "x"),
        ("[÷‰]", "%"),
        ("[⋯…]", "..."),
        ("ˆ", "^"),
        ("[›»]", ">"),
        ("[‹«]", "<"),
        ("[•·]", "*"),
    ),
    (
        ("[‚„¸]", ","),
        ("[`´‘’]", "'"),
        ("[“”]", '"'),
        ("[¦︱︲]", "|"),
        ("[᐀゠⸗]", "="),
        ("[¬¨－﹣﹘⸻⸺¯−₋⁻―—–‒‑‐᠆־]", "-"),
        ("[⁓֊〜〰]", "~"),
        ("[™©®†‡§¶]", ""),
    ),
)

_STRUCTURE_PASSES: tuple[_Pass, ...] = (
    (
        (r"(\d{1,2}):(\d{2}):(\d{2})", r"\1-\2-\3"),
        (r"(\d{1,2}):(\d{2})", r"\1-\2"),
        (r"(\d{1,2})/(\d{1,2})/(\d{2}\d{2}?)", r"\1-\2-\3"),
        (r"(\d{1,2}\d{2}?)/(\d{1,2})/(\d{1,2})", r"\2-\3-\1"),
        (r"(\d{1,2})/(\d{1,2})", r"\1-\2"),
    ),
    (
        (r"[:;|/\\]", " - "),
        (r"[?<>*]", ""),
        ('"', "'"),
    ),
    (
        (r"\++", "+"),
        (r"-+", "-"),
        (r"\+-", "+ -"),
        (r"(?:-\s+)+", "- "),
        (r"(?:\+\s+)+", "+ "),
        (r"(?:\s+-\s+)+", " - "),
        (r'^\s*(?:[\-+"]+\s+)+|(?:\s+[\-+"]+)+\s*$', ""),
    ),
    (
        (r"!(?:\s*!)+|(?:\s*!)+$", "!"),
        (r"\$(?:\s*\$)+", "$"),
        (r"\s+", " "),
    ),
)


def clean_title(title: str | None) -> str:
    """Turn a catalog title into a file-system-safe file stem.

    Args:
        title: The raw title; None is treated as empty.

    Returns:
        The cleaned title.
    """
    cleaned = unicodedata.normalize("NFC", title or "")
    cleaned = _COMBINING_MARKS.sub("", cleaned).strip()
    cleaned = _apply_passes(cleaned, _SYMBOL_PASSES)

    cleaned = re.sub(r"[\r\n\t ]+", " ", cleaned)
    cleaned = _CONTROL_CHARS.sub("", cleaned)
    cleaned = _NON_LATIN1.sub(NON_ASCII_REPLACEMENT, cleaned).strip()

    return _apply_passes(cleaned, _STRUCTURE_PASSES)


def _apply_passes(text: str, passes: tuple[_Pass, ...]) -> str:
    for substitutions in passes:
        for pattern, replacement in substitutions:
            text = re.sub(pattern, replacement, text)
        text = text.strip()
    return text


def get_format(file_name: str) -> str:
    """Return the lowercase extension of a file name, without the dot."""
    _, dot, ext = file_name.rpartition(".")
    return ext.lower() if dot else ""


def set_format(file_name: str, file_format: str) -> str:
    """Replace (or add) the extension of a file name."""
    stem, dot, _ = file_name.rpartition(".")
    return f"{stem if dot else file_name}.{file_format}"


def is_video_format(file_name: str) -> bool:
    """Return True if the file name carries a known video extension."""
    return get_format(file_name) in VIDEO_FORMATS


def is_audio_format(file_name: str) -> bool:
    """Return True if the file name carries a known audio extension."""
    return get_format(file_name) in AUDIO_FORMATS


def formats_compatible(first: str, second: str) -> bool:
    """Return True if two file names hold the same kind of media.

    Same extension, both video, or both audio.
    """
    return (
        get_format(first) == get_format(second)
        or (is_video_format(first) and is_video_format(second))
        or (is_audio_format(first) and is_audio_format(second))
    )


def title_key(file_name: str) -> str:
    """Return a case- and punctuation-insensitive key for a file's stem.

    Two names that differ only in how their title was cleaned (punctuation,
    spacing, casing) produce the same key.
    """
    stem, dot, _ = file_name.rpartition(".")
    return _TITLE_KEY_STRIP.sub("", (stem if dot else file_name).casefold())
