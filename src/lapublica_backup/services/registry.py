"""Typed registry mapping each entity kind to its strategy."""

from collections.abc import Iterable, Mapping

from lapublica_backup.db.repositories import Store
from lapublica_backup.models.backup import EntityKind
from lapublica_backup.models.category import CategoryType
from lapublica_backup.services.reconcilers import (
    AuthoredContentStrategy,
    CategoryStrategy,
    CommunityStrategy,
    CompanyContentStrategy,
    CompanyStrategy,
    EntityStrategy,
    NamedCategoryStrategy,
    PostStrategy,
    ThreadPostStrategy,
    UserStrategy,
)

EntityRegistry = Mapping[EntityKind, EntityStrategy]


def build_registry(store: Store) -> dict[EntityKind, EntityStrategy]:
    """Create one strategy per entity kind.

    Args:
        store: Store holding every repository

    Returns:
        Registry keyed by entity kind
    """
    strategies: list[EntityStrategy] = [
        UserStrategy(store, store.users),
        CategoryStrategy(store, store.categories),
        NamedCategoryStrategy(store, store.group_categories, EntityKind.GROUP_CATEGORIES),
        NamedCategoryStrategy(store, store.forum_categories, EntityKind.FORUM_CATEGORIES),
        CompanyStrategy(store, store.companies),
        CommunityStrategy(
            store,
            store.groups,
            EntityKind.GROUPS,
            category_repository=store.group_categories,
            user_list_field="members",
            category_kind=EntityKind.GROUP_CATEGORIES,
        ),
        CommunityStrategy(
            store,
            store.forums,
            EntityKind.FORUMS,
            category_repository=store.forum_categories,
            user_list_field="moderators",
            category_kind=EntityKind.FORUM_CATEGORIES,
        ),
        PostStrategy(store, store.posts),
        ThreadPostStrategy(
            store,
            store.group_posts,
            EntityKind.GROUP_POSTS,
            container_field="group",
            container_repository=store.groups,
            container_kind=EntityKind.GROUPS,
        ),
        ThreadPostStrategy(
            store,
            store.forum_posts,
            EntityKind.FORUM_POSTS,
            container_field="forum",
            container_repository=store.forums,
            container_kind=EntityKind.FORUMS,
        ),
        AuthoredContentStrategy(
            store, store.announcements, EntityKind.ANNOUNCEMENTS, CategoryType.ANNOUNCEMENT
        ),
        AuthoredContentStrategy(store, store.blogs, EntityKind.BLOGS, CategoryType.BLOG),
        CompanyContentStrategy(store, store.job_offers, EntityKind.JOB_OFFERS, CategoryType.JOB),
        CompanyContentStrategy(
            store, store.advisories, EntityKind.ADVISORIES, CategoryType.ADVISORY
        ),
    ]
    registry = {strategy.kind: strategy for strategy in strategies}
    missing = set(EntityKind) - set(registry)
    if missing:
        raise RuntimeError(f"No strategy registered for: {sorted(k.value for k in missing)}")
    return registry


def dependency_stages(
    kinds: Iterable[EntityKind], registry: EntityRegistry
) -> list[list[EntityKind]]:
    """Group kinds into stages so every kind runs after its dependencies.

    Dependencies on kinds outside ``kinds`` are ignored, since those kinds
    are not being imported and whatever the store holds is used instead.

    Args:
        kinds: Kinds selected for import
        registry: Strategy registry

    Returns:
        Stages in execution order; kinds within a stage are independent

    Raises:
        ValueError: If the dependencies form a cycle
    """
    selected = set(kinds)
    remaining = {
        kind: {dep for dep in registry[kind].depends_on if dep in selected and dep != kind}
        for kind in selected
    }
    order = list(EntityKind)
    stages: list[list[EntityKind]] = []
    while remaining:
        ready = sorted(
            (kind for kind, deps in remaining.items() if not deps), key=order.index
        )
        if not ready:
            raise ValueError(f"Dependency cycle among: {sorted(k.value for k in remaining)}")
        stages.append(ready)
        for kind in ready:
            del remaining[kind]
        for deps in remaining.values():
            deps.difference_update(ready)
    return stages
