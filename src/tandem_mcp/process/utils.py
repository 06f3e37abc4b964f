"""Utility helpers for the process runner."""

from __future__ import annotations

import os
import re
import sys
from typing import Mapping

_SANITIZED_VARS = {
    "PYTHONHOME",
    "PYTHONPATH",
    "VIRTUAL_ENV",
    "PIP_RESPECT_VIRTUALENV",
}

_ANSI_ESCAPE = re.compile(r"\x1b\[[0-9;?]*[A-Za-z]")


def build_environment(
    overrides: Mapping[str, str] | None = None,
    additional: Mapping[str, str] | None = None,
) -> dict[str, str]:
    """Return a sanitized environment suitable for launching an assistant CLI.

    ``overrides`` are applied first, then ``additional`` (caller supplied).
    The CLIs look up their credentials under the home directory, so ``HOME``
    and ``USERPROFILE`` are filled in from each other when one is missing.
    """

    env = dict(os.environ)
    for key in _SANITIZED_VARS:
        env.pop(key, None)
    if overrides:
        env.update(overrides)
    if additional:
        env.update(additional)

    home = env.get("HOME") or env.get("USERPROFILE")
    if home:
        env.setdefault("HOME", home)
        env.setdefault("USERPROFILE", home)
    return env


def clean_output(text: str) -> str:
    """Strip terminal escape sequences and normalize line endings."""

    return _ANSI_ESCAPE.sub("", text).replace("\r\n", "\n")


def platform_executable(name: str) -> str:
    """Return the launcher name npm installs for ``name`` on this platform."""

    return f"{name}.cmd" if sys.platform == "win32" else name


__all__ = ["build_environment", "clean_output", "platform_executable"]
