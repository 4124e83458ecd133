import re
from bisect import bisect_right
from typing import List

from thesis_check.config import CHARS_PER_PAGE

PAGE_BREAK_PATTERNS = [
    re.compile(r"\f"),
    re.compile(r"\n[-–—]\s*\d+\s*[-–—]"),
    re.compile(r"\n[Tt]rang\s+\d+"),
    re.compile(r"\n[Pp]age\s+\d+"),
]


class PageLocator:
    """Maps character offsets to 1-based page numbers.

    Page breaks are explicit markers found in the content (form feed, "-N-"
    style folios, "Page N" / "Trang N" headers). Content with no markers is
    paginated every `chars_per_page` characters. Breaks are computed once so
    repeated lookups over the same document are a binary search.
    """

    def __init__(self, content: str, chars_per_page: int = CHARS_PER_PAGE):
        self.content = content or ""
        self.chars_per_page = chars_per_page
        self.breaks = self._find_breaks()

    def _find_breaks(self) -> List[int]:
        found = set()
        for pattern in PAGE_BREAK_PATTERNS:
            found.update(m.start() for m in pattern.finditer(self.content))
        if not found and self.chars_per_page > 0:
            found.update(range(self.chars_per_page, len(self.content) + 1, self.chars_per_page))
        found.discard(0)
        return sorted(found)

    @property
    def page_count(self) -> int:
        return len(self.breaks) + 1

    def page_for(self, offset: int) -> int:
        return bisect_right(self.breaks, max(offset, 0)) + 1


def locate_page(content: str, offset: int, chars_per_page: int = CHARS_PER_PAGE) -> int:
    return PageLocator(content, chars_per_page).page_for(offset)
