from __future__ import annotations

from collections.abc import Iterable, Iterator, Mapping, Sequence

from .content import Post


def listing_key(post: Post) -> tuple[int, str]:
    """Sort key putting newer posts first and breaking date ties by filename."""
    return (-post.date.toordinal(), post.filename)


class PostCollection(Sequence[Post]):
    """Lightweight helper for working with lists of Posts in templates and code."""

    def __init__(self, posts: Iterable[Post]):
        self._posts = list(posts)

    def __iter__(self) -> Iterator[Post]:
        return iter(self._posts)

    def __len__(self) -> int:
        return len(self._posts)

    def __getitem__(self, item):
        return self._posts[item]

    def with_tag(self, tag: str) -> PostCollection:
        return PostCollection(p for p in self._posts if tag in p.tags)

    def by_author(self, author: str) -> PostCollection:
        return PostCollection(p for p in self._posts if p.author == author)

    def sorted(self) -> PostCollection:
        """Return posts in listing order.

        Newest first by publication date; posts sharing a date are ordered
        by filename, ascending. The order is total, so repeated builds list
        posts identically.
        """
        return PostCollection(sorted(self._posts, key=listing_key))

    def latest(self, count: int = 5) -> PostCollection:
        return PostCollection(self.sorted()[:count])

    def neighbours(self, post: Post) -> tuple[Post | None, Post | None]:
        """Return the (newer, older) posts around ``post`` in this collection."""
        index = next(i for i, p in enumerate(self._posts) if p is post)
        newer = self._posts[index - 1] if index > 0 else None
        older = self._posts[index + 1] if index + 1 < len(self._posts) else None
        return newer, older

    def __repr__(self) -> str:  # pragma: no cover - for debugging
        return f"PostCollection({len(self._posts)} posts)"


class TagCollection(Mapping[str, PostCollection]):
    """Mapping of tag name to PostCollection, iterated in tag name order."""

    def __init__(self, mapping: dict[str, Iterable[Post]]):
        self._mapping = {
            k: PostCollection(mapping[k]).sorted()
            for k in sorted(mapping, key=lambda t: (t.lower(), t))
        }

    def __getitem__(self, key: str) -> PostCollection:
        return self._mapping[key]

    def __iter__(self) -> Iterator[str]:
        return iter(self._mapping)

    def __len__(self) -> int:
        return len(self._mapping)

    def __repr__(self) -> str:  # pragma: no cover - for debugging
        return f"TagCollection({len(self._mapping)} tags)"
