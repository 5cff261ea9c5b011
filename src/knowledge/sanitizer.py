"""Strip privacy-tagged spans from evidence before it is stored."""

import re

SYSTEM_TAGS = ("beliefbase-context",)
USER_TAGS = ("private", "no-memory", "secret")


def _tag_pattern(name: str) -> re.Pattern:
    tag = re.escape(name)
    return re.compile(rf"<{tag}>.*?</{tag}>", re.DOTALL)


class ContentSanitizer:
    """Removes ``<private>``, ``<no-memory>``, ``<secret>`` and injected context blocks."""

    def __init__(self, tags: tuple[str, ...] = SYSTEM_TAGS + USER_TAGS):
        names = [t.strip() for t in tags]
        if any(not n for n in names):
            raise ValueError("Tag name cannot be empty")
        self.tags = tuple(names)
        self._patterns = [_tag_pattern(n) for n in self.tags]

    def strip_tags(self, text: str) -> str:
        for pattern in self._patterns:
            # Repeat until stable so nested spans are fully removed.
            while True:
                stripped = pattern.sub("", text)
                if stripped == text:
                    break
                text = stripped
        return text

    def count_tags(self, text: str) -> int:
        return sum(text.count(f"<{name}>") for name in self.tags)
