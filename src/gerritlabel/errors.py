# SPDX-License-Identifier: Apache-2.0
# SPDX-FileCopyrightText: 2025 The Linux Foundation
"""Exception hierarchy shared by the gerritlabel modules."""


class GerritLabelError(Exception):
    """Base class for every failure surfaced by a labeling run."""


class ConfigError(GerritLabelError):
    """Raised when a configuration file cannot be read or validated."""


__all__ = ["ConfigError", "GerritLabelError"]
