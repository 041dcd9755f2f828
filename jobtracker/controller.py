"""In-session list of applications kept in step with the remote store."""

import logging
import uuid
from typing import Callable, Iterable, Optional

from .models import JobApplication, JobApplicationFormData
from .store import ApplicationStore

logger = logging.getLogger(__name__)


class ApplicationError(RuntimeError):
    """A user-initiated change could not be written to the store."""


class SaveApplicationError(ApplicationError):
    def __init__(self) -> None:
        super().__init__("Failed to save application to database.")


class DeleteApplicationError(ApplicationError):
    def __init__(self) -> None:
        super().__init__("Failed to delete application.")


def new_id() -> str:
    """Mint a fresh application id."""
    return str(uuid.uuid4())


def filter_applications(
    apps: Iterable[JobApplication], term: str
) -> list[JobApplication]:
    """Applications whose company or role contains the term, ignoring case."""
    needle = term.lower()
    return [
        app
        for app in apps
        if needle in app.company.lower() or needle in app.role.lower()
    ]


class ApplicationController:
    """Owns the current user's applications for the session.

    Every change is written to the store first; the in-memory list only
    reflects it once the write has succeeded.
    """

    def __init__(
        self,
        store: ApplicationStore,
        user_id: str,
        id_factory: Callable[[], str] = new_id,
    ):
        self.store = store
        self.user_id = user_id
        self.id_factory = id_factory
        self._apps: list[JobApplication] = []
        self._viewing_id: Optional[str] = None
        self._editing_id: Optional[str] = None

    @property
    def applications(self) -> list[JobApplication]:
        return list(self._apps)

    def __len__(self) -> int:
        return len(self._apps)

    def get(self, app_id: str) -> Optional[JobApplication]:
        return next((app for app in self._apps if app.id == app_id), None)

    async def load(self) -> bool:
        """Replace the list with the store's contents.

        Failures are logged and leave the current list untouched.
        """
        try:
            apps = await self.store.list(self.user_id)
        except Exception as e:
            logger.error(f"Failed to load applications: {e}")
            return False

        self._apps = list(apps)
        logger.info(f"Loaded {len(self._apps)} applications")
        return True

    async def create(self, form: JobApplicationFormData) -> JobApplication:
        app = JobApplication.from_form(self.id_factory(), form)
        try:
            await self.store.create(self.user_id, app)
        except Exception as e:
            logger.error(f"Failed to create application {app.id}: {e}")
            raise SaveApplicationError() from e

        self._apps.insert(0, app)
        logger.info(f"Added application: {app.company} - {app.role}")
        return app

    async def update(self, app_id: str, form: JobApplicationFormData) -> JobApplication:
        existing = self.get(app_id)
        if existing is None:
            raise KeyError(app_id)

        # Only fields the form actually set override the stored record.
        updated = JobApplication.model_validate(
            {
                **existing.model_dump(),
                **form.model_dump(exclude_unset=True, exclude={"id"}),
                "id": existing.id,
            }
        )
        try:
            await self.store.update(self.user_id, updated)
        except Exception as e:
            logger.error(f"Failed to update application {app_id}: {e}")
            raise SaveApplicationError() from e

        self._apps = [updated if app.id == app_id else app for app in self._apps]
        logger.info(f"Updated application: {updated.company} - {updated.role}")
        return updated

    async def delete(self, app_id: str) -> None:
        try:
            await self.store.delete(self.user_id, app_id)
        except Exception as e:
            logger.error(f"Failed to delete application {app_id}: {e}")
            raise DeleteApplicationError() from e

        self._apps = [app for app in self._apps if app.id != app_id]
        if self._viewing_id == app_id:
            self.close_detail()
        if self._editing_id == app_id:
            self._editing_id = None
        logger.info(f"Deleted application {app_id}")

    def search(self, term: str) -> list[JobApplication]:
        return filter_applications(self._apps, term)

    @property
    def viewing(self) -> Optional[JobApplication]:
        """The application open in the detail view, if any."""
        if self._viewing_id is None:
            return None
        return self.get(self._viewing_id)

    def open_detail(self, app_id: str) -> JobApplication:
        app = self.get(app_id)
        if app is None:
            raise KeyError(app_id)
        self._viewing_id = app_id
        return app

    def close_detail(self) -> None:
        self._viewing_id = None

    @property
    def editing(self) -> Optional[JobApplication]:
        if self._editing_id is None:
            return None
        return self.get(self._editing_id)

    def begin_create(self) -> None:
        self._editing_id = None

    def begin_edit(self, app_id: str) -> JobApplication:
        """Switch from the detail view to editing an application."""
        app = self.get(app_id)
        if app is None:
            raise KeyError(app_id)
        self.close_detail()
        self._editing_id = app_id
        return app

    async def submit(self, form: JobApplicationFormData) -> JobApplication:
        """Save the form as an edit of the current target or as a new application."""
        if self._editing_id is not None:
            app = await self.update(self._editing_id, form)
        else:
            app = await self.create(form)
        self._editing_id = None
        return app

    def clear(self) -> None:
        """Drop all session state, e.g. after signing out."""
        self._apps = []
        self._viewing_id = None
        self._editing_id = None
