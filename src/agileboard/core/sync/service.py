"""
Sync service: the single source of truth for users, sprints and work items.

Holds the local snapshot of the three collections and mediates every
mutation through the configured backend. The snapshot is kept eventually
consistent with the remote store: reads are wholesale, and every change
event from the feed triggers a full refresh.

Mutation contract:
- create/delete: remote call first, then a full refresh (never optimistic)
- update_work_item: local merge first, then the remote call; a schema
  mismatch produces setup guidance, any other failure a refresh
- failures never propagate: they are logged and reported to the Notifier

Usage:
    >>> service = SyncService.from_config()
    >>> await service.start()
    >>> await service.update_work_item("A-4K2ZQ", {"title": "Ship it"})
    >>> service.snapshot().work_items
    >>> await service.aclose()
"""

from __future__ import annotations

import asyncio
import logging
import time
from collections.abc import Callable
from datetime import date, timedelta
from typing import Any

from pydantic import BaseModel, ConfigDict

from agileboard.core.backend import (
    Backend,
    BackendError,
    ChangeEvent,
    RealtimeError,
    SchemaMismatchError,
    StoragePermissionError,
    Subscription,
    get_backend,
)
from agileboard.core.config import AgileboardConfig, load_config
from agileboard.core.items.ids import IdGenerationError, generate_unique_work_item_id
from agileboard.core.items.mapping import (
    ALL_TABLES,
    SPRINTS_TABLE,
    USERS_TABLE,
    WORK_ITEMS_TABLE,
    coerce_sprint_changes,
    coerce_work_item_changes,
    row_to_sprint,
    row_to_user,
    row_to_work_item,
    sprint_changes_to_row,
    user_to_row,
    work_item_changes_to_row,
    work_item_to_row,
)
from agileboard.core.items.models import (
    Attachment,
    BoardColumn,
    FileUpload,
    Sprint,
    SprintStatus,
    User,
    WorkItem,
)
from agileboard.core.reports.board import status_for_column
from agileboard.core.sync.date_sync import (
    DateSyncPolicy,
    SprintAssignment,
    plan_sprint_assignments,
)
from agileboard.core.sync.notify import LoggingNotifier, Notifier
from agileboard.core.sync.selection import reconcile_selection, resolve_selected

logger = logging.getLogger(__name__)

DEFAULT_ITEM_TITLE = "New Item"
SEED_USER_NAME = "Agile Manager"

SCHEMA_MISMATCH_MESSAGE = (
    "The database does not know one of the fields being saved. "
    "Run the setup script again (agileboard setup) to add the missing columns."
)
STORAGE_PERMISSION_MESSAGE = (
    "Permission denied by the storage bucket. "
    "Run the setup script again (agileboard setup) to repair the bucket policies."
)


def _timestamp_ms() -> int:
    return int(time.time() * 1000)


class Snapshot(BaseModel):
    """Read-only view of the synchronization layer's state."""

    users: list[User]
    sprints: list[Sprint]
    work_items: list[WorkItem]
    loading: bool
    configured: bool
    selected_sprint: Sprint | None = None

    model_config = ConfigDict(frozen=True)


class SyncService:
    """
    Synchronization layer between presentation code and the backend.

    Constructed once per process and shared by reference. When no backend
    is configured, the collections stay empty, ``loading`` turns false and
    ``configured`` is False; every operation is then a logged no-op.

    Example:
        >>> service = SyncService(LocalBackend())
        >>> await service.refresh()
        >>> item = await service.create_work_item({"title": "Login page"})
    """

    def __init__(
        self,
        backend: Backend | None,
        notifier: Notifier | None = None,
        config: AgileboardConfig | None = None,
    ) -> None:
        """
        Initialize the service.

        Args:
            backend: Remote collaborators, or None when not configured
            notifier: Receiver of user-facing alerts (logs by default)
            config: Configuration (bucket names, sprint and date sync defaults)
        """
        self.backend = backend
        self.notifier: Notifier = notifier or LoggingNotifier()
        self.config = config or AgileboardConfig()

        self.users: list[User] = []
        self.sprints: list[Sprint] = []
        self.work_items: list[WorkItem] = []
        self.loading = True
        self.selected_sprint_id: str | None = self.config.sprints.selected

        self._subscription: Subscription | None = None
        self._listeners: list[Callable[[Snapshot], None]] = []

    @classmethod
    def from_config(
        cls,
        config: AgileboardConfig | None = None,
        notifier: Notifier | None = None,
    ) -> SyncService:
        """
        Build a service for the configured backend.

        Args:
            config: Loaded configuration (load_config() if None)
            notifier: Receiver of user-facing alerts

        Returns:
            SyncService, unconfigured when no backend is set up
        """
        if config is None:
            config = load_config()
        return cls(get_backend(config), notifier=notifier, config=config)

    # ============================================================================
    # Snapshot
    # ============================================================================

    @property
    def configured(self) -> bool:
        return self.backend is not None

    @property
    def selected_sprint(self) -> Sprint | None:
        """The selected sprint, falling back to the last one loaded."""
        return resolve_selected(self.selected_sprint_id, self.sprints)

    def select_sprint(self, sprint_id: str | None) -> None:
        self.selected_sprint_id = sprint_id

    def snapshot(self) -> Snapshot:
        return Snapshot(
            users=list(self.users),
            sprints=list(self.sprints),
            work_items=list(self.work_items),
            loading=self.loading,
            configured=self.configured,
            selected_sprint=self.selected_sprint,
        )

    def get_work_item(self, item_id: str) -> WorkItem | None:
        for item in self.work_items:
            if item.id == item_id:
                return item
        return None

    def get_sprint(self, sprint_id: str) -> Sprint | None:
        for sprint in self.sprints:
            if sprint.id == sprint_id:
                return sprint
        return None

    def add_listener(self, listener: Callable[[Snapshot], None]) -> None:
        """Call ``listener`` with a fresh snapshot after every refresh."""
        self._listeners.append(listener)

    def remove_listener(self, listener: Callable[[Snapshot], None]) -> None:
        if listener in self._listeners:
            self._listeners.remove(listener)

    def _require_backend(self, operation: str) -> Backend | None:
        if self.backend is None:
            logger.warning("Backend not configured, skipping %s", operation)
        return self.backend

    # ============================================================================
    # Lifecycle
    # ============================================================================

    @property
    def subscribed(self) -> bool:
        return self._subscription is not None

    async def start(self) -> None:
        """
        Subscribe to the change feed and load the first snapshot.

        Calling start() on a running service does not open a second
        subscription. A feed that cannot be joined is logged; the service
        keeps working without live updates.
        """
        backend = self.backend
        if backend is not None and backend.feed is not None and self._subscription is None:
            try:
                self._subscription = await backend.feed.subscribe(
                    list(ALL_TABLES), self._on_change
                )
            except RealtimeError as e:
                logger.error("Realtime unavailable, continuing without live updates: %s", e)
        await self.refresh()

    async def stop(self) -> None:
        """Release the change feed subscription. Safe to call more than once."""
        subscription, self._subscription = self._subscription, None
        if subscription is not None:
            await subscription.close()

    async def aclose(self) -> None:
        """Stop and release the backend's network resources."""
        await self.stop()
        if self.backend is not None:
            await self.backend.aclose()

    async def _on_change(self, event: ChangeEvent) -> None:
        logger.debug("Change on %s (%s %s), refreshing", event.table, event.type, event.record_id)
        await self.refresh()

    # ============================================================================
    # Refresh
    # ============================================================================

    async def refresh(self) -> None:
        """
        Reload all three collections from the backend.

        The reads run concurrently; each table that loads replaces its
        collection, each that fails is logged and left as it was. Does not
        set ``loading`` on entry; always clears it on exit.
        """
        backend = self.backend
        if backend is None:
            self.loading = False
            return

        try:
            user_rows, sprint_rows, item_rows = await asyncio.gather(
                backend.store.select_all(USERS_TABLE, order_by="name"),
                backend.store.select_all(SPRINTS_TABLE, order_by="created_at"),
                backend.store.select_all(WORK_ITEMS_TABLE, order_by="created_at", ascending=True),
                return_exceptions=True,
            )

            if users := self._map_rows(USERS_TABLE, user_rows, row_to_user):
                self.users = users[0]

            if sprints := self._map_rows(SPRINTS_TABLE, sprint_rows, row_to_sprint):
                self.sprints = sprints[0]
                self.selected_sprint_id = reconcile_selection(
                    self.selected_sprint_id, self.sprints
                )

            if items := self._map_rows(WORK_ITEMS_TABLE, item_rows, row_to_work_item):
                self.work_items = items[0]
        finally:
            self.loading = False

        for listener in list(self._listeners):
            listener(self.snapshot())

    @staticmethod
    def _map_rows(table: str, result: Any, mapper: Any) -> tuple[list[Any]] | None:
        # Wrapped in a tuple so an empty table still counts as loaded
        if isinstance(result, BackendError):
            logger.error("Failed to load %s: %s", table, result)
            return None
        if isinstance(result, BaseException):
            raise result
        try:
            return ([mapper(row) for row in result],)
        except (KeyError, ValueError) as e:
            logger.error("Failed to map %s rows: %s", table, e)
            return None

    # ============================================================================
    # Work items
    # ============================================================================

    def _apply_local(self, item_id: str, changes: dict[str, Any]) -> WorkItem | None:
        """Merge validated changes into the local copy of one work item."""
        for index, item in enumerate(self.work_items):
            if item.id == item_id:
                updated = item.model_copy(update=changes)
                self.work_items[index] = updated
                return updated
        return None

    async def create_work_item(self, fields: dict[str, Any] | None = None) -> WorkItem | None:
        """
        Insert a new work item with a locally generated id.

        Unset fields get the type defaults. Nothing is added locally until
        the insert succeeds and the refresh brings the canonical row.

        Args:
            fields: Initial field values (strings accepted for enums/dates)

        Returns:
            The created item, or None if the insert failed

        Raises:
            ValueError: If a field is unknown or has an invalid value
        """
        coerced = coerce_work_item_changes(fields or {})
        backend = self._require_backend("create_work_item")
        if backend is None:
            return None

        try:
            item_id = generate_unique_work_item_id({item.id for item in self.work_items})
        except IdGenerationError as e:
            self.notifier.alert(f"Failed to create item: {e}")
            return None

        coerced.setdefault("title", DEFAULT_ITEM_TITLE)
        item = WorkItem(id=item_id, **coerced)

        try:
            await backend.store.insert(WORK_ITEMS_TABLE, work_item_to_row(item))
        except BackendError as e:
            logger.error("Failed to create work item %s: %s", item_id, e)
            self.notifier.alert(f"Failed to create item: {e.message}")
            return None

        logger.info("Created work item %s", item_id)
        await self.refresh()
        return self.get_work_item(item_id) or item

    async def update_work_item(self, item_id: str, changes: dict[str, Any]) -> bool:
        """
        Optimistically update a work item.

        Phase one merges ``changes`` into the local snapshot before any
        network call. Phase two sends only the given keys. On a schema
        mismatch the user is told to re-run setup and the local state
        stands; on any other failure the snapshot is reloaded from remote.

        Args:
            item_id: Work item id
            changes: Fields to change (only these are sent)

        Returns:
            True if the remote update succeeded

        Raises:
            ValueError: If a field is unknown, immutable or invalid
        """
        coerced = coerce_work_item_changes(changes)
        backend = self._require_backend("update_work_item")
        if backend is None:
            return False

        self._apply_local(item_id, coerced)

        try:
            await backend.store.update(
                WORK_ITEMS_TABLE, item_id, work_item_changes_to_row(coerced)
            )
        except SchemaMismatchError as e:
            logger.error("Schema rejected update of %s: %s", item_id, e)
            self.notifier.alert(SCHEMA_MISMATCH_MESSAGE)
            return False
        except BackendError as e:
            logger.error("Failed to update work item %s: %s", item_id, e)
            self.notifier.alert(f"Failed to update item {item_id}: {e.message}")
            await self.refresh()
            return False

        return True

    async def delete_work_item(self, item_id: str) -> bool:
        """Delete a work item, then refresh. No local removal beforehand."""
        backend = self._require_backend("delete_work_item")
        if backend is None:
            return False

        ok = True
        try:
            await backend.store.delete(WORK_ITEMS_TABLE, item_id)
        except BackendError as e:
            logger.error("Failed to delete work item %s: %s", item_id, e)
            self.notifier.alert(f"Failed to delete item {item_id}: {e.message}")
            ok = False

        await self.refresh()
        return ok

    async def move_to_column(self, item_id: str, column: BoardColumn | str) -> bool:
        """Move an item to a kanban lane, deriving its status from the lane."""
        column = BoardColumn(column)
        return await self.update_work_item(
            item_id, {"column": column, "status": status_for_column(column)}
        )

    # ============================================================================
    # Attachments
    # ============================================================================

    async def upload_attachment(self, item_id: str, upload: FileUpload) -> Attachment | None:
        """
        Store a file and append it to a work item's attachments.

        The new list is persisted through update_work_item(), so it follows
        the optimistic update contract.

        Returns:
            The new attachment, or None if the upload or the row update failed
        """
        backend = self._require_backend("upload_attachment")
        if backend is None:
            return None

        bucket = self.config.storage.attachments_bucket
        path = f"attachments/{item_id}/{_timestamp_ms()}-{upload.name}"

        try:
            stored = await backend.files.upload(bucket, path, upload)
        except StoragePermissionError as e:
            logger.error("Storage denied upload of %s: %s", path, e)
            self.notifier.alert(STORAGE_PERMISSION_MESSAGE)
            return None
        except BackendError as e:
            logger.error("Failed to upload %s: %s", path, e)
            self.notifier.alert(f"Upload failed: {e.message}")
            return None

        attachment = Attachment(
            id=stored,
            name=upload.name,
            mime_type=upload.mime_type,
            url=backend.files.public_url(bucket, stored),
        )
        item = self.get_work_item(item_id)
        existing = list(item.attachments) if item else []
        if not await self.update_work_item(item_id, {"attachments": [*existing, attachment]}):
            return None
        return attachment

    async def remove_attachment(self, item_id: str, attachment_id: str) -> bool:
        """
        Drop an attachment from a work item's list.

        Only the work item row is written; the stored file is left in the
        bucket.
        """
        item = self.get_work_item(item_id)
        if item is None:
            logger.warning("Cannot remove attachment, unknown work item %s", item_id)
            return False
        remaining = [a for a in item.attachments if a.id != attachment_id]
        return await self.update_work_item(item_id, {"attachments": remaining})

    # ============================================================================
    # Sprints
    # ============================================================================

    def next_sprint_defaults(self, today: date | None = None) -> dict[str, Any]:
        """
        Defaults for the next sprint.

        Starts the day after the last sprint ends (or today), lasts the
        configured number of days.
        """
        last = self.sprints[-1] if self.sprints else None
        if last is not None and last.end_date is not None:
            start = last.end_date + timedelta(days=1)
        else:
            start = today or date.today()
        return {
            "name": f"SPRINT {start.year} - NEW",
            "start_date": start,
            "end_date": start + timedelta(days=self.config.sprints.length_days),
            "objective": "",
            "status": SprintStatus.PLANNED,
        }

    async def create_sprint(self, fields: dict[str, Any] | None = None) -> Sprint | None:
        """
        Insert a sprint and select it.

        Missing name, dates and status come from next_sprint_defaults().

        Returns:
            The created sprint, or None if the insert failed

        Raises:
            ValueError: If a field is unknown or has an invalid value
        """
        coerced = coerce_sprint_changes(fields or {})
        backend = self._require_backend("create_sprint")
        if backend is None:
            return None

        values = {**self.next_sprint_defaults(), **coerced}
        if not values.get("name"):
            raise ValueError("Sprint name is required")

        try:
            row = await backend.store.insert(SPRINTS_TABLE, sprint_changes_to_row(values))
        except BackendError as e:
            logger.error("Failed to create sprint %s: %s", values["name"], e)
            self.notifier.alert(f"Failed to create sprint: {e.message}")
            return None

        sprint_id = str(row["id"])
        logger.info("Created sprint %s (%s)", values["name"], sprint_id)
        self.selected_sprint_id = sprint_id
        await self.refresh()
        return self.get_sprint(sprint_id) or row_to_sprint(row)

    async def update_sprint(self, sprint_id: str, changes: dict[str, Any]) -> bool:
        """Update a sprint, then refresh. No optimistic local merge."""
        coerced = coerce_sprint_changes(changes)
        backend = self._require_backend("update_sprint")
        if backend is None:
            return False

        ok = True
        try:
            await backend.store.update(SPRINTS_TABLE, sprint_id, sprint_changes_to_row(coerced))
        except SchemaMismatchError as e:
            logger.error("Schema rejected update of sprint %s: %s", sprint_id, e)
            self.notifier.alert(SCHEMA_MISMATCH_MESSAGE)
            ok = False
        except BackendError as e:
            logger.error("Failed to update sprint %s: %s", sprint_id, e)
            self.notifier.alert(f"Failed to update sprint: {e.message}")
            ok = False

        await self.refresh()
        return ok

    async def delete_sprint(self, sprint_id: str) -> bool:
        """
        Unlink a sprint's work items, then delete the sprint.

        Runs with ``loading`` set. A failure part way is not rolled back:
        items may end up unlinked with the sprint still present, which a
        retry repairs.
        """
        backend = self._require_backend("delete_sprint")
        if backend is None:
            return False

        self.loading = True
        ok = True
        try:
            await backend.store.update_where(
                WORK_ITEMS_TABLE, "sprint_id", sprint_id, {"sprint_id": None}
            )
            for item in list(self.work_items):
                if item.sprint_id == sprint_id:
                    self._apply_local(item.id, {"sprint_id": None})

            await backend.store.delete(SPRINTS_TABLE, sprint_id)
            if self.selected_sprint_id == sprint_id:
                self.selected_sprint_id = None
            logger.info("Deleted sprint %s", sprint_id)
        except BackendError as e:
            logger.error("Failed to delete sprint %s: %s", sprint_id, e)
            self.notifier.alert(f"Failed to delete sprint: {e.message}")
            ok = False
        finally:
            await self.refresh()
            self.loading = False

        return ok

    async def sync_sprints_by_date(
        self, policy: DateSyncPolicy | None = None
    ) -> list[SprintAssignment]:
        """
        Move dated tasks and bugs into the sprint whose window holds them.

        Args:
            policy: Matching policy (defaults to the configured one)

        Returns:
            The assignments that were applied
        """
        if self._require_backend("sync_sprints_by_date") is None:
            return []

        policy = policy or DateSyncPolicy.from_config(self.config.date_sync)
        plan = plan_sprint_assignments(self.work_items, self.sprints, policy)

        applied = []
        for assignment in plan:
            if await self.update_work_item(assignment.item_id, {"sprint_id": assignment.sprint_id}):
                applied.append(assignment)

        logger.info("Date sync moved %d of %d planned items", len(applied), len(plan))
        return applied

    # ============================================================================
    # Users
    # ============================================================================

    async def add_user(self, name: str, avatar: FileUpload | None = None) -> bool:
        """
        Add a team member, uploading the avatar first when one is given.

        A failed avatar upload is logged and the user is created without
        one.
        """
        backend = self._require_backend("add_user")
        if backend is None:
            return False

        avatar_url = None
        if avatar is not None:
            bucket = self.config.storage.avatars_bucket
            path = f"{_timestamp_ms()}-{avatar.name}"
            try:
                stored = await backend.files.upload(bucket, path, avatar)
                avatar_url = backend.files.public_url(bucket, stored)
            except BackendError as e:
                logger.warning("Avatar upload failed for %s: %s", name, e)

        ok = True
        try:
            await backend.store.insert(USERS_TABLE, user_to_row(name, avatar_url))
        except BackendError as e:
            logger.error("Failed to add user %s: %s", name, e)
            self.notifier.alert(f"Failed to add user: {e.message}")
            ok = False

        await self.refresh()
        return ok

    async def remove_user(self, user_id: str) -> bool:
        """Delete a user. Work items keep their (now dangling) assignee."""
        backend = self._require_backend("remove_user")
        if backend is None:
            return False

        ok = True
        try:
            await backend.store.delete(USERS_TABLE, user_id)
        except BackendError as e:
            logger.error("Failed to remove user %s: %s", user_id, e)
            self.notifier.alert(f"Failed to remove user: {e.message}")
            ok = False

        await self.refresh()
        return ok

    async def seed(self) -> bool:
        """Insert a starter profile, with ``loading`` set while it runs."""
        backend = self._require_backend("seed")
        if backend is None:
            return False

        self.loading = True
        try:
            await backend.store.insert(USERS_TABLE, user_to_row(SEED_USER_NAME, None))
            await self.refresh()
            return True
        except BackendError as e:
            logger.error("Seeding failed: %s", e)
            self.notifier.alert(f"Failed to seed data: {e.message}")
            return False
        finally:
            self.loading = False
