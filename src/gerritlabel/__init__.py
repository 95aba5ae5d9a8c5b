# SPDX-License-Identifier: Apache-2.0
# SPDX-FileCopyrightText: 2025 The Linux Foundation
"""
gerritlabel: label Gerrit changes by the files they touch.

Usage:
    from gerritlabel import load_config, run

    result = run(load_config("config.json"), callback=print)
"""

__version__ = "0.1.0"

from gerritlabel.config import LabelerConfig, load_config, resolve_credentials
from gerritlabel.errors import ConfigError, GerritLabelError
from gerritlabel.labeler import LabelMap, LabelPatternError, assign_labels, derive_labels
from gerritlabel.pipeline import LabelingResult, label_changes, run

__all__ = [
    "ConfigError",
    "GerritLabelError",
    "LabelMap",
    "LabelPatternError",
    "LabelerConfig",
    "LabelingResult",
    "__version__",
    "assign_labels",
    "derive_labels",
    "label_changes",
    "load_config",
    "resolve_credentials",
    "run",
]
