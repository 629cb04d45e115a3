from __future__ import annotations

import contextlib
import json
import logging
import os
import shutil
import sys
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any

HOST_NAME = "post2mpv"
HOST_DESCRIPTION = "post2mpv native bridge (post2mpv-bridge)"
EXTENSION_ID = "post2mpv@netnom.uk"
CONSOLE_SCRIPT = "post2mpv-bridge"
_LOGGER = logging.getLogger("post2mpv.bridge.manifest")


@dataclass(frozen=True, slots=True)
class InstallTarget:
    label: str
    path: Path


@dataclass(slots=True)
class InstallReport:
    ok: bool = False
    wrote: list[str] = field(default_factory=list)
    errors: list[str] = field(default_factory=list)
    manifest_path: str | None = None


def resolve_executable(argv0: str, *, cwd: Path | None = None) -> str:
    """Absolute path of the running program, resolved once at startup."""
    candidate = str(argv0 or "").strip() or sys.executable
    if candidate.endswith(".py"):
        # `python -m post2mpv_bridge`: the module file is not launchable by the browser.
        installed = shutil.which(CONSOLE_SCRIPT)
        if installed:
            candidate = installed
    elif os.sep not in candidate and (os.altsep is None or os.altsep not in candidate):
        found = shutil.which(candidate)
        if found:
            candidate = found
    path = Path(candidate).expanduser()
    if not path.is_absolute():
        path = (cwd or Path.cwd()) / path
    return str(path.resolve())


def build_manifest(executable_path: str) -> dict[str, Any]:
    return {
        "name": HOST_NAME,
        "description": HOST_DESCRIPTION,
        "path": executable_path,
        "type": "stdio",
        "allowed_extensions": [EXTENSION_ID],
    }


def render_manifest(manifest: dict[str, Any]) -> str:
    return json.dumps(manifest, indent="\t")


def _targets_for_platform(platform: str, home: Path) -> list[InstallTarget]:
    if platform == "darwin":
        base = home / "Library" / "Application Support"
        return [
            InstallTarget("firefox", base / "Mozilla" / "NativeMessagingHosts"),
            InstallTarget("librewolf", base / "LibreWolf" / "NativeMessagingHosts"),
        ]
    if platform.startswith("linux") or platform.startswith("freebsd"):
        return [
            InstallTarget("firefox", home / ".mozilla" / "native-messaging-hosts"),
            InstallTarget("librewolf", home / ".librewolf" / "native-messaging-hosts"),
            InstallTarget("waterfox", home / ".waterfox" / "native-messaging-hosts"),
        ]
    return []


def _windows_manifest_path(home: Path) -> Path:
    appdata = os.environ.get("APPDATA")
    base = Path(appdata) if appdata else (home / "AppData" / "Roaming")
    return base / HOST_NAME / f"{HOST_NAME}.json"


def _windows_registry_targets() -> list[tuple[str, str]]:
    return [
        ("firefox", r"Software\Mozilla\NativeMessagingHosts"),
        ("librewolf", r"Software\LibreWolf\NativeMessagingHosts"),
    ]


def _write_manifest(path: Path, manifest: dict[str, Any]) -> None:
    path.parent.mkdir(parents=True, exist_ok=True)
    path.write_text(render_manifest(manifest) + "\n", encoding="utf-8")
    if os.name != "nt":
        with contextlib.suppress(OSError):
            path.chmod(0o644)


def install_manifest(
    executable_path: str,
    *,
    platform: str | None = None,
    home: Path | None = None,
) -> InstallReport:
    report = InstallReport()
    platform = platform or sys.platform
    home = home or Path.home()
    manifest = build_manifest(executable_path)

    if platform == "win32":
        manifest_file = _windows_manifest_path(home)
        try:
            _write_manifest(manifest_file, manifest)
            report.manifest_path = str(manifest_file)
        except OSError as exc:
            report.errors.append(f"failed to write native host manifest: {exc}")
            return report

        try:
            import winreg  # type: ignore[import-not-found]
        except ImportError as exc:
            report.errors.append(f"winreg unavailable: {exc}")
            return report

        for label, reg_path in _windows_registry_targets():
            full_path = f"{reg_path}\\{HOST_NAME}"
            try:
                with winreg.CreateKey(winreg.HKEY_CURRENT_USER, full_path) as key_handle:
                    winreg.SetValueEx(key_handle, "", 0, winreg.REG_SZ, str(manifest_file))
                report.wrote.append(f"{label}:HKCU\\{full_path}")
            except OSError as exc:
                report.errors.append(f"{label}: registry write failed: {exc}")
        report.ok = bool(report.wrote)
        return report

    targets = _targets_for_platform(platform, home)
    if not targets:
        report.errors.append(f"unsupported platform for installer: {platform}")
        return report

    out_name = f"{HOST_NAME}.json"
    for target in targets:
        out_path = target.path / out_name
        try:
            _write_manifest(out_path, manifest)
            report.wrote.append(f"{target.label}:{out_path}")
            if report.manifest_path is None:
                report.manifest_path = str(out_path)
        except OSError as exc:
            report.errors.append(f"{target.label}: failed to install: {exc}")
    report.ok = bool(report.wrote)
    return report


def install_main() -> None:
    """Console entry point: install the manifest for the `post2mpv-bridge` executable."""
    logging.basicConfig(level=logging.INFO, format="%(levelname)s %(message)s", stream=sys.stderr)
    exe = shutil.which(CONSOLE_SCRIPT) or resolve_executable(sys.argv[0])
    report = install_manifest(exe)
    for line in report.wrote:
        _LOGGER.info("wrote %s", line)
    for line in report.errors:
        _LOGGER.warning("%s", line)
    raise SystemExit(0 if report.ok else 1)


__all__ = [
    "CONSOLE_SCRIPT",
    "EXTENSION_ID",
    "HOST_DESCRIPTION",
    "HOST_NAME",
    "InstallReport",
    "InstallTarget",
    "build_manifest",
    "install_main",
    "install_manifest",
    "render_manifest",
    "resolve_executable",
]
