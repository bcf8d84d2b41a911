"""Target discovery for the webhook fan-out relay."""

from __future__ import annotations

import logging
import re
from abc import ABC, abstractmethod
from dataclasses import dataclass
from pathlib import Path
from typing import Iterable, Optional

from classmoji_core.config.settings import Settings

logger = logging.getLogger(__name__)

DEVPORT_ID_PATTERN = re.compile(r"DEVPORT_ID=(\d+)")


@dataclass(frozen=True, order=True)
class Endpoint:
    """A relay target; every target lives on the same host."""

    port: int
    host: str = "localhost"

    @property
    def base_url(self) -> str:
        return f"http://{self.host}:{self.port}"

    @property
    def host_header(self) -> str:
        return f"{self.host}:{self.port}"


def _dedupe(endpoints: Iterable[Endpoint]) -> list[Endpoint]:
    return sorted(set(endpoints))


class TargetDiscovery(ABC):
    """Abstract source of relay targets, consulted on every request."""

    @abstractmethod
    def list_targets(self) -> list[Endpoint]:
        ...


class StaticDiscovery(TargetDiscovery):
    """A fixed set of ports."""

    def __init__(self, ports: Iterable[int], host: str = "localhost"):
        self._endpoints = _dedupe(Endpoint(port, host) for port in ports)

    def list_targets(self) -> list[Endpoint]:
        return list(self._endpoints)


class DevportDiscovery(TargetDiscovery):
    """Finds hook-station instances of parallel devport worktrees.

    Sibling directories named `<project>-*` that contain a marker file with
    `DEVPORT_ID=<n>` map to port `hook_base_port + n * hook_port_stride`. The
    base port (id 0, the main checkout) is always included. Nothing is cached;
    worktrees come and go between requests.
    """

    def __init__(self, settings: Optional[Settings] = None):
        self._settings = settings or Settings()

    @property
    def default_endpoint(self) -> Endpoint:
        return Endpoint(self._settings.hook_base_port, self._settings.target_host)

    def port_for(self, devport_id: int) -> int:
        return self._settings.hook_base_port + devport_id * self._settings.hook_port_stride

    def list_targets(self) -> list[Endpoint]:
        endpoints = [self.default_endpoint]
        project_dir = Path(self._settings.project_dir).resolve()
        prefix = f"{project_dir.name}-"

        try:
            siblings = sorted(project_dir.parent.iterdir())
        except OSError as e:
            logger.warning(f"Could not scan {project_dir.parent} for devport environments: {e}")
            return endpoints

        for sibling in siblings:
            if not sibling.name.startswith(prefix) or not sibling.is_dir():
                continue
            devport_id = self._read_devport_id(sibling / self._settings.devport_marker)
            if devport_id is not None:
                endpoints.append(Endpoint(self.port_for(devport_id), self._settings.target_host))

        return _dedupe(endpoints)

    def _read_devport_id(self, marker: Path) -> Optional[int]:
        try:
            content = marker.read_text(encoding="utf-8")
        except FileNotFoundError:
            return None
        except (OSError, UnicodeDecodeError) as e:
            logger.warning(f"Skipping unreadable marker {marker}: {e}")
            return None

        match = DEVPORT_ID_PATTERN.search(content)
        if match is None:
            return None
        return int(match.group(1))
