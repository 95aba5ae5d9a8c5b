# SPDX-License-Identifier: Apache-2.0
# SPDX-FileCopyrightText: 2025 The Linux Foundation
"""
Labeling pipeline entry points.

A run lists the changes of the configured endpoint, keeps those of the
configured projects, fetches their files, derives their labels and hands
them to the caller. Failures are returned as part of the result instead of
being raised, so a run either yields every labeled change or none.

Usage:
    from gerritlabel.config import load_config
    from gerritlabel.pipeline import run

    result = run(load_config("config.json"), callback=print)
    if not result.ok:
        ...
"""

from __future__ import annotations

import asyncio
import logging
from collections.abc import Callable
from dataclasses import dataclass, field

import httpx

from gerritlabel.config import LabelerConfig
from gerritlabel.errors import GerritLabelError
from gerritlabel.gerrit.client import Credentials, GerritRestClient
from gerritlabel.gerrit.models import LabeledChange
from gerritlabel.gerrit.service import GerritChangeService
from gerritlabel.labeler import assign_labels

log = logging.getLogger("gerritlabel.pipeline")


@dataclass(frozen=True)
class LabelingResult:
    """Outcome of one labeling run: the labeled changes, or the error."""

    changes: list[LabeledChange] = field(default_factory=list)
    error: GerritLabelError | None = None

    @property
    def ok(self) -> bool:
        """Check if the run succeeded."""
        return self.error is None

    def raise_for_error(self) -> None:
        """Raise the run's error, if any."""
        if self.error is not None:
            raise self.error


async def label_changes(
    config: LabelerConfig,
    auth: Credentials | None = None,
    *,
    transport: httpx.AsyncBaseTransport | None = None,
) -> LabelingResult:
    """
    Run the labeling pipeline once.

    Args:
        config: Validated configuration.
        auth: Optional credentials for the Gerrit server.
        transport: Optional httpx transport, mainly for tests.

    Returns:
        A LabelingResult holding the labeled changes in server order, or
        the error that aborted the run.
    """
    try:
        async with GerritRestClient(
            auth=auth, timeout=config.timeout, transport=transport
        ) as client:
            service = GerritChangeService(
                client, config.endpoint, max_concurrency=config.max_concurrency
            )
            changes = await service.fetch_changes_with_files(
                config.projects, config.query_string
            )
    except GerritLabelError as exc:
        log.error("Labeling run against %s failed: %s", config.endpoint, exc)
        return LabelingResult(error=exc)

    labeled = assign_labels(changes, config.label_rules)
    log.info("Labeled %d changes from %s", len(labeled), config.endpoint)
    return LabelingResult(changes=list(labeled.values()))


def run(
    config: LabelerConfig,
    callback: Callable[[LabeledChange], object] | None = None,
    auth: Credentials | None = None,
    *,
    on_error: Callable[[GerritLabelError], object] | None = None,
) -> LabelingResult:
    """
    Run the pipeline synchronously and dispatch its outcome.

    On success ``callback`` is invoked once per labeled change, in order.
    On failure no callback is invoked and ``on_error`` receives the error.

    Returns:
        The LabelingResult of the run.
    """
    result = asyncio.run(label_changes(config, auth))

    if result.error is not None:
        if on_error is not None:
            on_error(result.error)
        return result

    if callback is not None:
        for change in result.changes:
            callback(change)
    return result


__all__ = [
    "LabelingResult",
    "label_changes",
    "run",
]
