# SPDX-License-Identifier: Apache-2.0
# SPDX-FileCopyrightText: 2025 The Linux Foundation
"""
Path-based labeling of Gerrit changes.

A label map assigns, per project, a set of regex fragments to each label
name. The fragments of one label are joined into a single alternation and
compiled once, when the map is built. A change receives a label when any
of its touched paths contains a match for that label's regex.

Usage:
    from gerritlabel.labeler import LabelMap, assign_labels

    label_map = LabelMap.from_mapping({"proj-a": {"python": [r"\\.py$"]}})
    labeled = assign_labels(changes_by_id, label_map)
"""

from __future__ import annotations

import logging
import re
from collections.abc import Iterable, Iterator, Mapping, Sequence
from dataclasses import dataclass

from gerritlabel.gerrit.models import GerritChangeWithFiles, LabeledChange

log = logging.getLogger("gerritlabel.labeler")


class LabelPatternError(ValueError):
    """Raised when a label's regex fragments do not compile."""

    def __init__(self, project: str, label: str, pattern: str, reason: str) -> None:
        super().__init__(
            f"Invalid pattern for label '{label}' in project '{project}': "
            f"{pattern!r} ({reason})"
        )
        self.project = project
        self.label = label
        self.pattern = pattern


@dataclass(frozen=True)
class LabelRule:
    """One label and the compiled alternation of its fragments."""

    name: str
    patterns: tuple[str, ...]
    regex: re.Pattern[str]

    def matches(self, paths: Iterable[str]) -> bool:
        """Check if any of the paths contains a match."""
        return any(self.regex.search(path) for path in paths)


class LabelMap(Mapping[str, tuple[LabelRule, ...]]):
    """Immutable mapping of project name to its ordered label rules."""

    def __init__(self, rules: Mapping[str, Sequence[LabelRule]]) -> None:
        self._rules = {project: tuple(r) for project, r in rules.items()}

    @classmethod
    def from_mapping(
        cls, mapping: Mapping[str, Mapping[str, Sequence[str]]]
    ) -> LabelMap:
        """
        Compile a raw project -> label -> fragments mapping.

        Fragments are joined with ``|`` verbatim, so they act as raw regex
        alternation branches.

        Raises:
            LabelPatternError: If a label's joined pattern is not a valid
                regular expression.
        """
        rules: dict[str, list[LabelRule]] = {}
        for project, labels in mapping.items():
            project_rules = rules.setdefault(project, [])
            for label, fragments in labels.items():
                pattern = "|".join(fragments)
                try:
                    regex = re.compile(pattern)
                except re.error as exc:
                    raise LabelPatternError(project, label, pattern, str(exc)) from exc
                project_rules.append(LabelRule(label, tuple(fragments), regex))
        return cls(rules)

    def __getitem__(self, project: str) -> tuple[LabelRule, ...]:
        return self._rules[project]

    def __iter__(self) -> Iterator[str]:
        return iter(self._rules)

    def __len__(self) -> int:
        return len(self._rules)

    def __repr__(self) -> str:
        summary = {p: [r.name for r in rules] for p, rules in self._rules.items()}
        return f"LabelMap({summary!r})"


def derive_labels(change: GerritChangeWithFiles, label_map: LabelMap) -> list[str]:
    """
    Compute the labels of one change.

    Labels follow the label map's order for the change's project. A change
    whose project has no rules gets no labels.
    """
    rules = label_map.get(change.project)
    if rules is None:
        return []

    paths = change.file_paths
    labels: dict[str, None] = {}
    for rule in rules:
        if rule.matches(paths):
            labels.setdefault(rule.name)
    return list(labels)


def assign_labels(
    changes: Mapping[str, GerritChangeWithFiles], label_map: LabelMap
) -> dict[str, LabeledChange]:
    """
    Label every change of a change-id keyed mapping.

    Returns:
        A new mapping, in the same order, of change id to labeled change.
    """
    result: dict[str, LabeledChange] = {}
    for change_id, change in changes.items():
        labels = derive_labels(change, label_map)
        log.debug("Change %s labeled %s", change_id, labels)
        result[change_id] = change.with_labels(labels)
    return result


__all__ = [
    "LabelMap",
    "LabelPatternError",
    "LabelRule",
    "assign_labels",
    "derive_labels",
]
