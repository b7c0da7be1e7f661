"""Database repositories."""

from lapublica_backup.db.database import Database
from lapublica_backup.db.repositories.category_repository import (
    CategoryRepository,
    CategoryTree,
)
from lapublica_backup.db.repositories.document_repository import DocumentRepository
from lapublica_backup.db.repositories.user_repository import UserRepository


class Store:
    """One repository per platform collection, sharing a database."""

    def __init__(self, db: Database) -> None:
        """Initialize all repositories.

        Args:
            db: Database instance
        """
        self.db = db
        self.users = UserRepository(db)
        self.categories = CategoryRepository(db)
        self.group_categories = DocumentRepository(db, "group_categories", ("name", "is_active"))
        self.forum_categories = DocumentRepository(db, "forum_categories", ("name", "is_active"))
        self.companies = DocumentRepository(db, "companies", ("name", "owner_id", "category_id"))
        self.groups = DocumentRepository(db, "groups", ("name", "creator_id", "category_id"))
        self.forums = DocumentRepository(db, "forums", ("name", "creator_id", "category_id"))
        self.posts = DocumentRepository(db, "posts", ("content", "author_id"))
        self.group_posts = DocumentRepository(db, "group_posts", ("title", "group_id", "author_id"))
        self.forum_posts = DocumentRepository(db, "forum_posts", ("title", "forum_id", "author_id"))
        self.announcements = DocumentRepository(
            db, "announcements", ("title", "author_id", "category_id")
        )
        self.blogs = DocumentRepository(db, "blogs", ("title", "author_id", "category_id"))
        self.job_offers = DocumentRepository(
            db, "job_offers", ("title", "company_id", "category_id")
        )
        self.advisories = DocumentRepository(
            db, "advisories", ("title", "company_id", "category_id")
        )


__all__ = [
    "CategoryRepository",
    "CategoryTree",
    "DocumentRepository",
    "Store",
    "UserRepository",
]
