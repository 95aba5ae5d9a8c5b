# SPDX-License-Identifier: Apache-2.0
# SPDX-FileCopyrightText: 2025 The Linux Foundation
"""
Gerrit integration package for gerritlabel.

Modules:
    client: async REST transport with deferred basic auth and XSSI decoding
    urls: URL construction for the change and file resources
    models: Pydantic models for change records at each pipeline stage
    service: change listing, project filtering and concurrent file fetching

Usage:
    from gerritlabel.gerrit import GerritChangeService, GerritRestClient

    async with GerritRestClient() as client:
        service = GerritChangeService(client, "https://gerrit.example.org/changes/")
        changes = await service.fetch_changes_with_files(["my-project"])
"""

from gerritlabel.gerrit.client import (
    Credentials,
    DeferredBasicAuth,
    GerritAuthError,
    GerritDecodeError,
    GerritNotFoundError,
    GerritRestClient,
    GerritRestError,
    decode_response,
)
from gerritlabel.gerrit.models import (
    FileList,
    GerritChange,
    GerritChangeWithFiles,
    LabeledChange,
)
from gerritlabel.gerrit.service import GerritChangeService, filter_by_project
from gerritlabel.gerrit.urls import build_changes_url, build_files_url

__all__ = [
    # Client
    "Credentials",
    "DeferredBasicAuth",
    "GerritAuthError",
    "GerritDecodeError",
    "GerritNotFoundError",
    "GerritRestClient",
    "GerritRestError",
    "decode_response",
    # Models
    "FileList",
    "GerritChange",
    "GerritChangeWithFiles",
    "LabeledChange",
    # Service
    "GerritChangeService",
    "filter_by_project",
    # URLs
    "build_changes_url",
    "build_files_url",
]
