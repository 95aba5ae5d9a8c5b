# SPDX-License-Identifier: Apache-2.0
# SPDX-FileCopyrightText: 2025 The Linux Foundation
"""
Gerrit service layer for gerritlabel.

This module provides the operations that turn a Gerrit endpoint into
changes enriched with their touched files:

- Listing changes for an optional query
- Listing the files of one revision of a change
- Restricting changes to a set of projects
- Fetching the files of every surviving change concurrently and merging
  them back onto the changes
"""

from __future__ import annotations

import asyncio
import logging
from collections.abc import Collection, Iterable
from typing import Any, TypeVar

from pydantic import ValidationError

from gerritlabel.gerrit.client import GerritDecodeError, GerritRestClient
from gerritlabel.gerrit.models import FileList, GerritChange, GerritChangeWithFiles
from gerritlabel.gerrit.urls import (
    DEFAULT_REVISION,
    build_changes_url,
    build_files_url,
)

log = logging.getLogger("gerritlabel.gerrit.service")

_ChangeT = TypeVar("_ChangeT", bound=GerritChange)


def filter_by_project(
    changes: Iterable[_ChangeT], projects: Collection[str]
) -> list[_ChangeT]:
    """
    Keep the changes whose project is one of ``projects``.

    Order is preserved and the filter is idempotent.
    """
    return [change for change in changes if change.project in projects]


class GerritChangeService:
    """
    High-level service for reading changes and their files.

    The service does not own the REST client; callers open and close it.
    """

    def __init__(
        self,
        client: GerritRestClient,
        endpoint: str,
        max_concurrency: int | None = None,
    ) -> None:
        """
        Initialize the change service.

        Args:
            client: An open Gerrit REST client.
            endpoint: URL of the list-changes resource.
            max_concurrency: Optional cap on concurrent file requests.
                Unbounded when None.
        """
        self._client = client
        self.endpoint = endpoint
        self._max_concurrency = max_concurrency

        log.debug(
            "GerritChangeService initialized: endpoint=%s, max_concurrency=%s",
            endpoint,
            max_concurrency if max_concurrency else "unbounded",
        )

    async def list_changes(self, query: str | None = None) -> list[GerritChange]:
        """
        List the changes returned by the endpoint for ``query``.

        Args:
            query: Optional Gerrit query string (e.g. "status:open").

        Returns:
            Changes in server order.

        Raises:
            GerritRestError: If the request fails.
            GerritDecodeError: If the payload is not a list of changes.
        """
        url = build_changes_url(self.endpoint, query)
        log.debug("Listing changes: %s", url)

        data = await self._client.get_json(url)
        if not isinstance(data, list):
            raise GerritDecodeError(
                f"Expected a list of changes from {url}, got {type(data).__name__}"
            )

        try:
            changes = [GerritChange.model_validate(item) for item in data]
        except ValidationError as exc:
            raise GerritDecodeError(f"Malformed change record from {url}: {exc}") from exc

        if changes and changes[-1].more_changes:
            # Only the first page is processed.
            log.warning(
                "Gerrit returned %d changes and reports more are available; "
                "narrow the query to include the rest",
                len(changes),
            )

        log.debug("Listed %d changes", len(changes))
        return changes

    async def list_files(
        self, change_id: str, revision_id: str = DEFAULT_REVISION
    ) -> FileList:
        """
        List the files touched by one revision of a change.

        Args:
            change_id: The change identifier (the ``id`` field of a change).
            revision_id: The revision, defaults to "current".

        Returns:
            Mapping of file path to Gerrit FileInfo.
        """
        url = build_files_url(self.endpoint, change_id, revision_id)
        log.debug("Listing files: %s", url)

        data: Any = await self._client.get_json(url)
        if not isinstance(data, dict):
            raise GerritDecodeError(
                f"Expected a file map from {url}, got {type(data).__name__}"
            )
        return data

    async def fetch_changes_with_files(
        self, projects: Collection[str], query: str | None = None
    ) -> dict[str, GerritChangeWithFiles]:
        """
        Fetch changes for the given projects together with their files.

        File lists are requested concurrently, one request per change. The
        first failing request aborts the whole operation: its exception is
        raised, the requests still in flight are cancelled, and nothing is
        merged.

        Args:
            projects: Project names to keep.
            query: Optional Gerrit query string.

        Returns:
            Mapping of change id to enriched change, in the order the
            server listed the changes.
        """
        changes = filter_by_project(await self.list_changes(query), projects)
        log.debug("%d changes remain after project filter", len(changes))

        if not changes:
            return {}

        semaphore = (
            asyncio.Semaphore(self._max_concurrency) if self._max_concurrency else None
        )

        async def fetch(change: GerritChange) -> FileList:
            if semaphore is None:
                return await self.list_files(change.id)
            async with semaphore:
                return await self.list_files(change.id)

        tasks = [asyncio.ensure_future(fetch(change)) for change in changes]
        try:
            file_lists = await asyncio.gather(*tasks)
        except BaseException:
            for task in tasks:
                task.cancel()
            await asyncio.gather(*tasks, return_exceptions=True)
            raise

        return {
            change.id: change.with_files(files)
            for change, files in zip(changes, file_lists)
        }


__all__ = [
    "GerritChangeService",
    "filter_by_project",
]
