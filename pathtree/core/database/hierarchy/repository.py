"""Tree repository: the caller-facing surface of the hierarchy package.

Wires the path codec, mutation guard, cascade propagator, ordering manager
and tree reconstructor around one document store. Every structural change
goes through an explicit method (``create``, ``save``, ``reparent``,
``delete``, ``move_to_position``) instead of lifecycle hooks.

Example:
    store = MemoryDocumentStore()
    repo = TreeRepository(store, TreeSettings(path_separator=".", tree_ordering=True))

    adam = await repo.create({"name": "Adam"})
    carol = await repo.create({"name": "Carol", "parent": adam})
    dann = await repo.create({"name": "Dann", "parent": carol})

    await repo.get_ancestors(dann)              # [adam, carol]
    await repo.get_children_tree(adam)          # nested dicts
    result = await repo.delete(carol)           # CascadeResult
"""

from __future__ import annotations

import logging
from collections.abc import Mapping
from typing import TYPE_CHECKING, Any

from pathtree.core.database.exceptions import InvalidFilterError, NotFoundError
from pathtree.core.database.filters import ASCENDING, ID_FIELD, is_inclusion, normalize_projection
from pathtree.core.database.hierarchy.cascade import CascadePropagator, CascadeResult
from pathtree.core.database.hierarchy.guard import MutationGuard
from pathtree.core.database.hierarchy.node import PARENT_FIELD, PATH_FIELD, TreeNode
from pathtree.core.database.hierarchy.options import ChildrenQuery, QueryOptions, TreeQuery
from pathtree.core.database.hierarchy.ordering import OrderingManager
from pathtree.core.database.hierarchy.paths import PathCodec
from pathtree.core.database.hierarchy.reconstruct import TreeReconstructor
from pathtree.core.database.store import collect
from pathtree.core.settings import OnDelete, TreeSettings, get_tree_settings
from pathtree.infra.logging import get_lazy_logger

if TYPE_CHECKING:
    from collections.abc import Callable

    from pathtree.core.database.filters import Document, Filter, Projection, Sort
    from pathtree.core.database.store import DocumentStore


class TreeRepository:
    """Materialized-path tree operations over a DocumentStore.

    Args:
        store: Document store holding the tree records
        settings: Tree settings (default: get_tree_settings())
        id_type: Converts a path segment back into a stored id
        model_name: Record kind used in log records and NotFoundError
    """

    def __init__(
        self,
        store: DocumentStore,
        settings: TreeSettings | None = None,
        *,
        id_type: Callable[[str], Any] = str,
        model_name: str = "Node",
    ) -> None:
        self.store = store
        self.settings = settings or get_tree_settings()
        self.id_type = id_type
        self.model_name = model_name

        self.codec = PathCodec(self.settings.path_separator)
        self.cascade = CascadePropagator(store, self.codec, self.settings.num_workers)
        self.ordering = OrderingManager(store, self.settings.ordering_field, model_name=model_name)
        self.guard = MutationGuard(
            store,
            self.codec,
            self.cascade,
            self.ordering,
            model_name=model_name,
        )
        self.reconstructor = TreeReconstructor(self.codec)

        self._logger = logging.getLogger(f"repository.{model_name}")
        self._lazy = get_lazy_logger(f"repository.{model_name}")

    # -- nodes ------------------------------------------------------------

    def new(self, **fields: Any) -> TreeNode:
        """Build an unsaved node."""
        node = TreeNode(codec=self.codec)
        for name, value in fields.items():
            node[name] = value
        return node

    def wrap(self, document: Mapping[str, Any]) -> TreeNode:
        """Wrap a stored document in a clean, saved node."""
        return TreeNode(document, is_new=False, codec=self.codec)

    def _result(self, document: Document, lean: bool | None) -> TreeNode | Document:
        return document if lean else self.wrap(document)

    def _default_sort(self, sort: Sort | None) -> Sort | None:
        if sort is None and self.ordering.field is not None:
            return {self.ordering.field: ASCENDING}
        return sort

    async def _query(self, filters: Filter, options: QueryOptions) -> list[Any]:
        documents = await collect(
            self.store.find(
                filters,
                fields=options.fields,
                sort=self._default_sort(options.sort),
            ),
        )
        return [self._result(document, options.lean) for document in documents]

    # -- reads ------------------------------------------------------------

    async def get(self, node_id: Any, *, fields: Projection | None = None) -> TreeNode | None:
        """Get a node by id."""
        document = await self.store.find_one({ID_FIELD: node_id}, fields=fields)
        self._lazy.debug(
            lambda: f"tree.get: {self.model_name}({node_id}) -> {'found' if document else 'not found'}"
        )
        return self.wrap(document) if document is not None else None

    async def get_or_raise(self, node_id: Any, *, fields: Projection | None = None) -> TreeNode:
        """Get a node by id or raise NotFoundError."""
        node = await self.get(node_id, fields=fields)
        if node is None:
            self._logger.info(
                "Entity not found",
                extra={"entity": self.model_name, "id": str(node_id), "operation": "tree.get_or_raise"},
            )
            raise NotFoundError(self.model_name, {ID_FIELD: node_id})
        return node

    async def find(self, filters: Filter | None = None, options: QueryOptions | None = None) -> list[Any]:
        """Query nodes with the default sibling order applied."""
        options = options or QueryOptions()
        return await self._query({**options.filters, **(filters or {})}, options)

    # -- writes -----------------------------------------------------------

    async def create(self, node: TreeNode | Mapping[str, Any]) -> TreeNode:
        """Save a new node built from a TreeNode or a field mapping."""
        if not isinstance(node, TreeNode):
            node = self.new(**dict(node))
        await self.save(node)
        self._lazy.debug(lambda: f"tree.create: {self.model_name}(id={node.id}, path={node.path})")
        return node

    async def save(self, node: TreeNode) -> CascadeResult:
        """Persist ``node``, computing its path and position first.

        A new node is inserted; a saved node gets a ``$set`` of its changed
        fields. If its parent changed, descendant paths are rewritten before
        the node's own update.

        Returns:
            Result of the descendant path rewrite

        Raises:
            NotFoundError: If the parent id does not resolve
            HierarchyCycleError: If the node would become its own ancestor
            PartialCascadeError: If the descendant rewrite failed part way
            StoreError: If the store rejects a write
        """
        if node.id is None:
            node.id = self.store.new_id()

        result = await self.guard.before_save(node)

        if node.is_new:
            await self.store.insert_one(node.to_document())
        elif node.is_modified():
            changes = {name: node.get(name) for name in node.modified_fields}
            await self.store.update_one({ID_FIELD: node.id}, {"$set": changes})
        node.mark_persisted()
        return result

    async def reparent(self, node: TreeNode, parent: TreeNode | Any | None) -> CascadeResult:
        """Move ``node`` (and its subtree) under ``parent``; None makes it a root."""
        node.parent = parent
        result = await self.save(node)
        self._logger.info(
            "Node reparented",
            extra={
                "entity": self.model_name,
                "id": str(node.id),
                "parent": str(node.parent),
                "operation": "tree.reparent",
                "descendants_updated": result.updated,
            },
        )
        return result

    async def delete(self, node: TreeNode, *, policy: OnDelete | str | None = None) -> CascadeResult:
        """Delete ``node`` and apply the delete policy to its descendants.

        Args:
            node: Node to delete
            policy: DELETE or REPARENT; defaults to the configured on_delete

        Returns:
            Result of the descendant cascade (NOT_ATTEMPTED for a node that was
            never saved or is no longer stored)

        Raises:
            PartialCascadeError: If the descendant cascade failed part way; the
                node itself is then left in place
        """
        policy = OnDelete(policy or self.settings.on_delete)

        # Cascades from ancestors may have rewritten the stored path
        stored = None
        if not node.is_new and node.id is not None:
            stored = await self.store.find_one({ID_FIELD: node.id}, fields=[PARENT_FIELD, PATH_FIELD])
        if stored is not None:
            node.refresh({PARENT_FIELD: stored.get(PARENT_FIELD), PATH_FIELD: stored.get(PATH_FIELD)})

        if stored is None or not node.path:
            result = CascadeResult.skipped("delete_subtree")
        elif policy is OnDelete.DELETE:
            result = await self.cascade.delete_subtree(node)
        else:
            result = await self.cascade.reparent_children(node)

        if node.id is not None:
            await self.store.remove_many({ID_FIELD: node.id})

        self._logger.info(
            "Entity deleted",
            extra={
                "entity": self.model_name,
                "id": str(node.id),
                "policy": str(policy),
                "operation": "tree.delete",
                "descendants_affected": result.updated,
            },
        )
        return result

    async def move_to_position(self, node: TreeNode, position: int) -> TreeNode:
        """Move ``node`` among its siblings; see OrderingManager.move_to_position."""
        return await self.ordering.move_to_position(node, position)

    # -- navigation -------------------------------------------------------

    async def get_children(self, node: TreeNode, query: ChildrenQuery | None = None) -> list[Any]:
        """Direct children of ``node``, or every descendant when recursive."""
        query = query or ChildrenQuery()
        filters = dict(query.filters)
        if query.recursive:
            if not node.path:
                return []
            filters[PATH_FIELD] = {"$regex": self.codec.prefix_pattern(node.path)}
        else:
            filters[PARENT_FIELD] = node.id
        return await self._query(filters, query)

    async def get_parent(self, node: TreeNode, *, fields: Projection | None = None) -> TreeNode | None:
        """Parent of ``node``, or None for a root."""
        if node.parent is None:
            return None
        return await self.get(node.parent, fields=fields)

    async def get_ancestors(self, node: TreeNode, options: QueryOptions | None = None) -> list[Any]:
        """Ancestors of ``node``, root first unless a sort is given."""
        options = options or QueryOptions()
        ids = [self.id_type(segment) for segment in self.codec.ancestor_ids(node.path)]
        if not ids:
            return []

        filters = {**options.filters, ID_FIELD: {"$in": ids}}
        documents = await collect(self.store.find(filters, fields=options.fields, sort=options.sort))
        if options.sort is None:
            rank = {str(ancestor_id): index for index, ancestor_id in enumerate(ids)}
            documents.sort(key=lambda document: rank.get(str(document.get(ID_FIELD)), len(rank)))
        return [self._result(document, options.lean) for document in documents]

    async def get_siblings(
        self,
        node: TreeNode,
        *,
        include_self: bool = False,
        options: QueryOptions | None = None,
    ) -> list[Any]:
        """Nodes sharing ``node``'s parent."""
        options = options or QueryOptions()
        filters = {**options.filters, PARENT_FIELD: node.parent}
        if not include_self:
            filters[ID_FIELD] = {"$ne": node.id}
        return await self._query(filters, options)

    def level(self, node: TreeNode | Mapping[str, Any]) -> int:
        """Depth of ``node`` (1 for a root)."""
        return self.codec.level(node.get(PATH_FIELD))

    # -- trees ------------------------------------------------------------

    @property
    def tree_field_names(self) -> list[str]:
        """Fields every tree query fetches and populate never replaces."""
        names = [ID_FIELD, PARENT_FIELD, PATH_FIELD]
        if self.ordering.field is not None:
            names.append(self.ordering.field)
        return names

    def _tree_fields(self, fields: Projection | None) -> dict[str, bool] | None:
        projection = normalize_projection(fields)
        if not projection:
            return projection

        required = self.tree_field_names
        if is_inclusion(projection):
            return {**projection, **dict.fromkeys(required, True)}
        return {name: flag for name, flag in projection.items() if name not in required}

    async def _populate(self, documents: list[Document], fields: tuple[str, ...]) -> None:
        """Replace id references (single ids or lists of ids) with the referenced documents."""
        for name in fields:
            ids: set[Any] = set()
            for document in documents:
                value = document.get(name)
                if isinstance(value, list):
                    ids.update(value)
                elif value is not None:
                    ids.add(value)
            if not ids:
                continue

            referenced = await collect(self.store.find({ID_FIELD: {"$in": list(ids)}}))
            by_id = {document[ID_FIELD]: document for document in referenced}
            for document in documents:
                value = document.get(name)
                if isinstance(value, list):
                    document[name] = [by_id.get(item) for item in value]
                elif value is not None:
                    document[name] = by_id.get(value)

    async def get_children_tree(
        self,
        root: TreeNode | Mapping[str, Any] | None = None,
        query: TreeQuery | None = None,
    ) -> list[Any]:
        """Descendants of ``root`` (or the whole forest) as a nested tree.

        Args:
            root: Subtree root; None builds every tree in the collection
            query: Tree options; ``lean`` defaults to ``not wrap_children_tree``

        Returns:
            The root's children (or the forest roots), each with ``children``

        Raises:
            InvalidFilterError: If ``populate`` names a tree field
        """
        query = query or TreeQuery()
        tree_fields = sorted(set(query.populate) & set(self.tree_field_names))
        if tree_fields:
            raise InvalidFilterError(
                f"Tree fields cannot be populated: {', '.join(tree_fields)}",
                filter_name="populate",
            )
        filters = dict(query.filters)
        root_id = None

        if root is not None:
            root_id = root.get(ID_FIELD)
            root_path = root.get(PATH_FIELD)
            if query.recursive:
                if not root_path:
                    return []
                filters[PATH_FIELD] = {"$regex": self.codec.prefix_pattern(root_path)}
            else:
                filters[PARENT_FIELD] = root_id
        elif not query.recursive:
            filters[PARENT_FIELD] = None

        documents = await collect(
            self.store.find(
                filters,
                fields=self._tree_fields(query.fields),
                sort=self._default_sort(query.sort),
            ),
        )
        if query.populate:
            await self._populate(documents, query.populate)

        lean = query.lean if query.lean is not None else not self.settings.wrap_children_tree
        records = documents if lean else [self.wrap(document) for document in documents]

        tree = self.reconstructor.build(
            records,
            root_id,
            min_level=query.min_level,
            allow_empty_children=query.allow_empty_children,
            objectify=query.objectify,
        )
        self._lazy.debug(lambda: f"tree.get_children_tree: {self.model_name}({root_id}) -> {len(documents)} nodes")
        return tree


__all__ = [
    "TreeRepository",
]
