"""Build metadata exposed on the build-info endpoint."""

from __future__ import annotations

import os
from collections.abc import Mapping
from dataclasses import dataclass
from importlib import metadata
from typing import Any

DISTRIBUTION_NAME = "cm-service"


@dataclass(slots=True, frozen=True)
class BuildInfo:
    """Static build metadata, normally injected by the image build."""

    version: str
    repository: str = ""
    revision: str = ""
    builder: str = ""
    date_time: str = ""

    @classmethod
    def from_env(cls, environ: Mapping[str, str] | None = None) -> BuildInfo:
        env = os.environ if environ is None else environ
        return cls(
            version=env.get("BUILD_VERSION") or package_version(),
            repository=env.get("BUILD_REPOSITORY", ""),
            revision=env.get("BUILD_REVISION", ""),
            builder=env.get("BUILD_BUILDER", ""),
            date_time=env.get("BUILD_DATETIME", ""),
        )

    def to_dict(self) -> dict[str, Any]:
        return {
            "version": self.version,
            "repository": self.repository,
            "revision": self.revision,
            "builder": self.builder,
            "dateTime": self.date_time,
        }


def package_version() -> str:
    try:
        return metadata.version(DISTRIBUTION_NAME)
    except metadata.PackageNotFoundError:
        return "0.0.0+unknown"
