# src/models/blog_post.py

"""Blog post data model."""

from dataclasses import dataclass, field
from datetime import datetime

from src.models.property import MediaItem


@dataclass
class Author:
    """Post author as exposed by the CMS user embed."""

    name: str
    avatar_url: str = ""


@dataclass
class BlogPost:
    """A sanitised blog post ready for rendering."""

    id: int
    slug: str
    title: str
    excerpt: str = ""
    body: str = ""
    published_at: datetime | None = None
    author: Author | None = None
    media: list[MediaItem] = field(
        default_factory=lambda: list[MediaItem]()
    )
    categories: list[int] = field(
        default_factory=lambda: list[int]()
    )


@dataclass
class BlogPage:
    """One page of the blog feed or of a blog search."""

    page: int = 1
    posts: list[BlogPost] = field(
        default_factory=lambda: list[BlogPost]()
    )
    total_posts: int = 0
    total_pages: int = 0

    @property
    def has_next_page(self) -> bool:
        return self.page < self.total_pages

    @property
    def has_prev_page(self) -> bool:
        return self.page > 1
