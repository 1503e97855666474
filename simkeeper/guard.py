"""Stale-path detection and re-binding for cached application records.

Reinstalling an app in the simulator moves its data into a new container
directory, so cached ``documents_path``/``snapshots_path`` values can point at
nothing. The guard re-lists the owning device and re-finds the application by
bundle identifier, the one attribute that survives reinstalls.
"""

from __future__ import annotations

import logging
from collections.abc import Callable, Iterable

from .model import Application

logger = logging.getLogger(__name__)

RefreshApplications = Callable[[str], Iterable[Application]]


def _paths_valid(app: Application, require_snapshots: bool) -> bool:
    if app.documents_path is None or app.snapshots_path is None:
        return False
    if not app.documents_path.is_dir():
        return False
    return not require_snapshots or app.snapshots_path.is_dir()


def _ensure_documents(app: Application) -> bool:
    """Create a missing documents directory inside a container that still exists."""
    documents = app.documents_path
    if documents is None or app.snapshots_path is None:
        return False
    if documents.is_dir():
        return True
    if not documents.parent.is_dir():
        return False
    try:
        documents.mkdir()
    except OSError as exc:
        logger.warning("could not create documents directory %s: %s", documents, exc)
        return False
    return True


class PathStalenessGuard:
    """Validate application paths before snapshot work, refreshing when stale."""

    def __init__(self, refresh_applications: RefreshApplications) -> None:
        self._refresh_applications = refresh_applications

    def _refreshed(self, app: Application) -> Application | None:
        if not app.bundle_identifier:
            return None
        try:
            candidates = list(self._refresh_applications(app.device_id))
        except OSError as exc:
            logger.warning("could not refresh applications for %s: %s", app.device_id, exc)
            return None
        for candidate in candidates:
            if candidate.bundle_identifier == app.bundle_identifier:
                return candidate
        return None

    def ensure_valid(self, app: Application, *, require_snapshots: bool = True) -> Application | None:
        """Return ``app`` or a refreshed record whose paths exist, else ``None``.

        With ``require_snapshots=False`` only the documents directory must
        exist, and it is created when its data container is still present.
        """
        if self._check(app, require_snapshots):
            return app

        logger.info("paths for %s look stale; refreshing device %s", app.bundle_identifier, app.device_id)
        refreshed = self._refreshed(app)
        if refreshed is not None and self._check(refreshed, require_snapshots):
            if refreshed.documents_path != app.documents_path:
                logger.info("re-bound %s to %s", app.bundle_identifier, refreshed.documents_path)
            return refreshed

        logger.warning("paths for %s could not be validated", app.bundle_identifier or app.name)
        return None

    def ensure_documents(self, app: Application) -> Application | None:
        """Relaxed check used before taking a snapshot or opening the folder."""
        return self.ensure_valid(app, require_snapshots=False)

    def _check(self, app: Application, require_snapshots: bool) -> bool:
        if not require_snapshots and not _ensure_documents(app):
            return False
        return _paths_valid(app, require_snapshots)


__all__ = [
    "RefreshApplications",
    "PathStalenessGuard",
]
