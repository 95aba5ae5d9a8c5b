# SPDX-License-Identifier: Apache-2.0
# SPDX-FileCopyrightText: 2025 The Linux Foundation
"""
Gerrit URL construction utilities.

The endpoint handed to these helpers is the list-changes resource itself
(e.g. "https://gerrit.example.org/changes/"); per-change resources hang
off it.

Usage:
    from gerritlabel.gerrit.urls import build_changes_url, build_files_url

    build_changes_url("https://gerrit.example.org/changes/", "status:open")
    build_files_url("https://gerrit.example.org/changes/", "proj~main~I12")
"""

from __future__ import annotations

from urllib.parse import urlencode, urlsplit, urlunsplit

DEFAULT_REVISION = "current"


def build_changes_url(endpoint: str, query: str | None = None) -> str:
    """
    Build the list-changes URL.

    The endpoint is returned unchanged when no query is given; otherwise
    the query is URL-encoded into the ``q`` parameter.
    """
    if not query:
        return endpoint
    separator = "&" if "?" in endpoint else "?"
    return f"{endpoint}{separator}{urlencode({'q': query})}"


def build_files_url(
    endpoint: str, change_id: str, revision_id: str = DEFAULT_REVISION
) -> str:
    """
    Build the URL listing the files of one revision of a change.

    Any query or fragment on the endpoint applies to the change list only
    and is dropped.
    """
    parts = urlsplit(endpoint)
    path = f"{parts.path.rstrip('/')}/{change_id}/revisions/{revision_id}/files/"
    return urlunsplit((parts.scheme, parts.netloc, path, "", ""))


__all__ = ["DEFAULT_REVISION", "build_changes_url", "build_files_url"]
