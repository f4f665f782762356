"""Diagnostic configuration adapters.

``SettingsDiagnosticConfiguration`` layers a per-workspace-folder override
file (``.textile-ls.json``) over the process settings::

    {
        "validate_enabled": true,
        "validate_file_links": "error",
        "validate_ignore_links": ["/images/**"]
    }

The override file is read on every ``get_options`` call so edits take
effect immediately.  A malformed file is logged and ignored.
"""

from __future__ import annotations

import json
from pathlib import Path
from typing import Any, Iterable

import structlog
from pydantic import BaseModel, ConfigDict, ValidationError

from textile_ls.config.settings import Settings
from textile_ls.domain.entities import DiagnosticOptions
from textile_ls.domain.enums import DiagnosticLevel
from textile_ls.domain.events import ConfigurationChanged
from textile_ls.domain.exceptions import ConfigurationError
from textile_ls.domain.ports import EventBus, TextileWorkspace
from textile_ls.domain.uri import DocumentUri, Schemes

logger = structlog.get_logger(__name__)

WORKSPACE_SETTINGS_FILE = ".textile-ls.json"


class WorkspaceOverrides(BaseModel):
    """Validation settings a workspace folder may override."""

    model_config = ConfigDict(extra="forbid")

    validate_enabled: bool | None = None
    validate_reference_links: DiagnosticLevel | None = None
    validate_header_links: DiagnosticLevel | None = None
    validate_file_links: DiagnosticLevel | None = None
    validate_file_link_fragments: DiagnosticLevel | None = None
    validate_ignore_links: list[str] | None = None


def build_options(values: dict[str, Any]) -> DiagnosticOptions:
    """Map settings-shaped *values* onto :class:`DiagnosticOptions`."""
    fragments = values.get("validate_file_link_fragments")
    return DiagnosticOptions(
        enabled=values["validate_enabled"],
        validate_references=DiagnosticLevel(values["validate_reference_links"]).to_severity(),
        validate_own_headers=DiagnosticLevel(values["validate_header_links"]).to_severity(),
        validate_file_paths=DiagnosticLevel(values["validate_file_links"]).to_severity(),
        validate_file_link_fragments=(
            DiagnosticLevel(fragments).to_severity() if fragments is not None else None
        ),
        ignore_links=tuple(values.get("validate_ignore_links") or ()),
    )


def _settings_values(settings: Settings) -> dict[str, Any]:
    return {
        "validate_enabled": settings.validate_enabled,
        "validate_reference_links": settings.validate_reference_links,
        "validate_header_links": settings.validate_header_links,
        "validate_file_links": settings.validate_file_links,
        "validate_file_link_fragments": settings.validate_file_link_fragments,
        "validate_ignore_links": list(settings.validate_ignore_links),
    }


class SettingsDiagnosticConfiguration:
    """Settings plus per-folder overrides.  Implements ``DiagnosticConfiguration``."""

    def __init__(self, settings: Settings, workspace: TextileWorkspace, bus: EventBus) -> None:
        self._settings = settings
        self._workspace = workspace
        self._bus = bus

    def get_options(self, resource: DocumentUri) -> DiagnosticOptions:
        values = _settings_values(self._settings)
        folder = self._folder_for(resource)
        if folder is not None:
            try:
                overrides = self.read_overrides(folder)
            except ConfigurationError as exc:
                logger.warning("configuration.invalid_override", folder=str(folder), error=exc.message)
            else:
                values.update(overrides.model_dump(exclude_none=True))
        return build_options(values)

    def read_overrides(self, folder: DocumentUri) -> WorkspaceOverrides:
        path = Path(folder.fs_path) / WORKSPACE_SETTINGS_FILE
        if not path.is_file():
            return WorkspaceOverrides()
        try:
            data = json.loads(path.read_text(encoding="utf-8"))
            return WorkspaceOverrides.model_validate(data)
        except (OSError, ValueError, ValidationError) as exc:
            raise ConfigurationError(
                f"Invalid workspace settings file: {path}",
                details={"path": str(path), "error": str(exc)},
            ) from exc

    def update_ignore_links(self, resource: DocumentUri, links: Iterable[str]) -> None:
        """Add *links* to the folder's ignore list and persist it."""
        folder = self._folder_for(resource)
        if folder is None:
            raise ConfigurationError(
                "Resource is not inside a workspace folder",
                details={"resource": str(resource)},
            )

        path = Path(folder.fs_path) / WORKSPACE_SETTINGS_FILE
        data: dict[str, Any] = {}
        if path.is_file():
            try:
                data = json.loads(path.read_text(encoding="utf-8"))
            except (OSError, ValueError) as exc:
                raise ConfigurationError(
                    f"Invalid workspace settings file: {path}",
                    details={"path": str(path), "error": str(exc)},
                ) from exc

        current = data.get("validate_ignore_links")
        if current is None:
            current = list(self._settings.validate_ignore_links)
        merged = list(dict.fromkeys([*current, *links]))
        data["validate_ignore_links"] = merged
        path.write_text(json.dumps(data, indent=2) + "\n", encoding="utf-8")

        logger.info("configuration.ignore_links_updated", folder=str(folder), count=len(merged))
        self._bus.publish(ConfigurationChanged(folder))

    def _folder_for(self, resource: DocumentUri) -> DocumentUri | None:
        folder = self._workspace.workspace_folder_for(resource)
        if folder is None and resource.scheme == Schemes.UNTITLED and self._workspace.workspace_folders:
            folder = self._workspace.workspace_folders[0]
        if folder is None or folder.scheme != Schemes.FILE:
            return None
        return folder


class MemoryDiagnosticConfiguration:
    """Fixed options held in memory.  Implements ``DiagnosticConfiguration``."""

    def __init__(self, options: DiagnosticOptions, bus: EventBus | None = None) -> None:
        self._options = options
        self._bus = bus

    def get_options(self, resource: DocumentUri) -> DiagnosticOptions:
        return self._options

    def update(self, options: DiagnosticOptions) -> None:
        self._options = options
        self._notify()

    def update_ignore_links(self, resource: DocumentUri, links: Iterable[str]) -> None:
        merged = tuple(dict.fromkeys([*self._options.ignore_links, *links]))
        self._options = self._options.model_copy(update={"ignore_links": merged})
        self._notify()

    def _notify(self) -> None:
        if self._bus is not None:
            self._bus.publish(ConfigurationChanged())
