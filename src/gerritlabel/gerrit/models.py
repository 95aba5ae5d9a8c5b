# SPDX-License-Identifier: Apache-2.0
# SPDX-FileCopyrightText: 2025 The Linux Foundation
"""
Gerrit data models for gerritlabel.

The Gerrit change record is treated as opaque: only ``id`` and ``project``
are required, a handful of common fields are typed for convenience, and
every other field the server sends is preserved as-is so that consumers
receive the complete record.

A change moves through three stages, each a frozen model:
- GerritChange: as listed by the server
- GerritChangeWithFiles: plus the files of its current revision
- LabeledChange: plus the labels derived from those files
"""

from __future__ import annotations

from typing import Any

from pydantic import BaseModel, ConfigDict, Field

FileList = dict[str, Any]


class GerritChange(BaseModel):
    """A Gerrit ChangeInfo record as returned by the list-changes endpoint."""

    model_config = ConfigDict(extra="allow", frozen=True, populate_by_name=True)

    id: str = Field(..., description="Triplet id (project~branch~Change-Id)")
    project: str = Field(..., description="Gerrit project name")
    branch: str = Field("", description="Target branch")
    change_id: str = Field("", description="Gerrit Change-Id (I-prefixed)")
    subject: str = Field("", description="First line of commit message")
    status: str = Field("", description="Change status (NEW, MERGED, ABANDONED)")
    number: int | None = Field(None, alias="_number", description="Change number")
    more_changes: bool = Field(
        False,
        alias="_more_changes",
        description="Set on the last record when the server truncated the list",
    )

    def with_files(self, files: FileList) -> GerritChangeWithFiles:
        """Return a copy of this change carrying its file list."""
        return GerritChangeWithFiles.model_validate(
            {**self.to_record(), "files": files}
        )

    def to_record(self) -> dict[str, Any]:
        """
        Return the change as a plain dict using Gerrit's field names.

        Only the fields the server sent (plus any enrichment) are included;
        typed fields left at their defaults are omitted.
        """
        unset = set(type(self).model_fields) - self.model_fields_set
        return self.model_dump(by_alias=True, exclude=unset)


class GerritChangeWithFiles(GerritChange):
    """A change enriched with the files touched by its current revision."""

    files: FileList = Field(default_factory=dict, description="Path to file info")

    @property
    def file_paths(self) -> list[str]:
        """Get the touched paths in server order."""
        return list(self.files)

    def with_labels(self, labels: list[str]) -> LabeledChange:
        """Return a copy of this change carrying its derived labels."""
        return LabeledChange.model_validate({**self.to_record(), "labels": labels})


class LabeledChange(GerritChangeWithFiles):
    """A change with the labels derived from its touched files."""

    labels: list[str] = Field(
        default_factory=list, description="Derived labels, first match first"
    )


__all__ = [
    "FileList",
    "GerritChange",
    "GerritChangeWithFiles",
    "LabeledChange",
]
