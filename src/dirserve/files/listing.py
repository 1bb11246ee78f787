"""
=============================================================================
LISTING RENDERER
=============================================================================

Enumerates a directory and renders it as plain text or HTML.

=============================================================================
WHAT GETS LISTED
=============================================================================

    for each child of the directory:

        unreadable by this process?            skip
        symlink, and symlinks not followed?    skip
        hidden, and hidden not included?       skip
        matches an exclusion glob?             skip
        otherwise                              keep its name

    names are sorted by code point ("B" < "a" < "b")

Listings are computed per request and never cached, so a file that appears
on disk shows up on the next refresh.

=============================================================================
EXCLUSION GLOBS
=============================================================================

Patterns are anchored at the process working directory captured when the
pipeline is built, not at the served root:

    cwd      = /home/me
    root     = /home/me/site
    --exclude "site/drafts/**"   hides /home/me/site/drafts/<anything>
    --exclude "**/*.bak"         hides every .bak file at any depth

    *    any run of characters except "/"
    **   any run of characters including "/"
    ?    one character except "/"
    [ab] [!ab]  character classes
    {a,b}       alternation

=============================================================================
OUTPUT FORMATS
=============================================================================

    text/plain                      text/html
    ──────────                      ─────────
    bar.html\\r\\n                    <!DOCTYPE html>
    foo.txt\\r\\n                     <title>Directory listing for: /docs/</title>
                                    <h2>Directory listing for: /docs/</h3>
                                    <hr/>
                                    <ul>
                                    <li><a href="../">..</a></li>
                                    <li><a href="bar.html">bar.html</a></li>
                                    ...

The HTML shell is fixed byte for byte, mismatched </h3> included. Names
that fail ``is_allowed_file_name`` are left out of the HTML view only.

=============================================================================
"""

import os
import re
from dataclasses import dataclass, field
from typing import Iterable, List, Pattern, Tuple

from .entities import is_hidden
from .paths import is_allowed_file_name


def glob_to_regex(pattern: str) -> str:
    """
    Translate a glob into a regular expression matching "/"-separated paths.

    Raises:
        ValueError: on an unclosed "{".
    """
    out = []
    i, n = 0, len(pattern)
    in_braces = False

    while i < n:
        c = pattern[i]
        if c == "*":
            if pattern.startswith("**/", i):
                out.append("(?:.*/)?")
                i += 3
                continue
            if pattern.startswith("**", i):
                out.append(".*")
                i += 2
                continue
            out.append("[^/]*")
        elif c == "?":
            out.append("[^/]")
        elif c == "[":
            end = pattern.find("]", i + 2)
            if end == -1:
                out.append(re.escape(c))
            else:
                body = pattern[i + 1:end]
                if body.startswith("!"):
                    body = "^" + body[1:]
                out.append("[" + body.replace("\\", "\\\\") + "]")
                i = end
        elif c == "{" and not in_braces:
            in_braces = True
            out.append("(?:")
        elif c == "}" and in_braces:
            in_braces = False
            out.append(")")
        elif c == "," and in_braces:
            out.append("|")
        else:
            out.append(re.escape(c))
        i += 1

    if in_braces:
        raise ValueError(f"Unclosed '{{' in glob: {pattern!r}")
    return "".join(out)


def _slashed(path: str) -> str:
    return path.replace(os.sep, "/") if os.sep != "/" else path


class GlobMatcher:
    """A set of exclusion globs compiled against one base directory."""

    def __init__(self, patterns: Iterable[Tuple[str, Pattern]] = ()):
        self._patterns = list(patterns)

    @classmethod
    def rooted_at(cls, base: str, globs: Iterable[str]) -> "GlobMatcher":
        """
        Compile ``globs`` relative to ``base``.

        Absolute globs are kept as they are. ``base`` is matched literally:
        brackets or braces in the working directory are not glob syntax.

        Raises:
            ValueError: a glob is malformed.
        """
        prefix = re.escape(_slashed(base).rstrip("/") + "/")
        compiled = []
        for glob in sorted(globs):
            try:
                source = glob_to_regex(_slashed(glob))
                if not os.path.isabs(glob):
                    source = prefix + source
                compiled.append((glob, re.compile(source)))
            except (ValueError, re.error) as e:
                raise ValueError(f"Invalid glob {glob!r}: {e}") from e
        return cls(compiled)

    def __bool__(self) -> bool:
        return bool(self._patterns)

    def matches(self, path: str) -> bool:
        target = _slashed(path)
        return any(regex.fullmatch(target) for _, regex in self._patterns)

    def matches_any_ancestor(self, path: str, root: str) -> bool:
        """True if ``path`` or a directory above it, up to ``root``, matches."""
        if not self._patterns:
            return False
        current = os.path.normpath(path)
        root = os.path.normpath(root)
        while len(current) > len(root):
            if self.matches(current):
                return True
            current = os.path.dirname(current)
        return False


@dataclass(frozen=True)
class ListingPolicy:
    follow_symlinks: bool = False
    include_hidden: bool = False
    excluded: GlobMatcher = field(default_factory=GlobMatcher)


def list_directory(directory: str, policy: ListingPolicy) -> List[str]:
    """
    Names of the visible children of ``directory``, sorted by code point.

    Raises:
        OSError: if the directory itself cannot be read.
    """
    names = []
    with os.scandir(directory) as entries:
        for entry in entries:
            if not os.access(entry.path, os.R_OK):
                continue
            if entry.is_symlink() and not policy.follow_symlinks:
                continue
            if not policy.include_hidden and is_hidden(entry.name, entry.stat(follow_symlinks=False)):
                continue
            if policy.excluded.matches(entry.path):
                continue
            names.append(entry.name)
    return sorted(names)


def render_text(names: List[str]) -> str:
    return "\r\n".join(names) + "\r\n"


def render_html(uri: str, names: List[str]) -> str:
    """
    Render the HTML listing.

    Args:
        uri: Request path as it appeared in the request line.
        names: Sorted names from ``list_directory``.
    """
    parts = [
        "<!DOCTYPE html>\r\n",
        f"<title>Directory listing for: {uri}</title>\r\n",
        f"<h2>Directory listing for: {uri}</h3>\r\n",
        "<hr/>\r\n<ul>\r\n",
    ]
    if uri != "/":
        parts.append('<li><a href="../">..</a></li>\r\n')
    for name in names:
        if is_allowed_file_name(name):
            parts.append(f'<li><a href="{name}">{name}</a></li>\r\n')
    parts.append("</ul>\r\n<hr/>\r\n")
    return "".join(parts)


def render(uri: str, names: List[str], media_type: str) -> Tuple[str, str]:
    """
    Render ``names`` as ``media_type``.

    Returns:
        (body, Content-Type header value)
    """
    if media_type == "text/html":
        return render_html(uri, names), "text/html; charset=UTF-8"
    return render_text(names), "text/plain; charset=UTF-8"
