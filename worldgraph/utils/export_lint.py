# WorldGraph Export Lint
# Reports common problems in a native tree about to be written to disk.
#
# Contract highlights:
# - Reports, never blocks: lint_export() returns human-readable warnings.
# - Walks typed nodes only; untyped records are checked as fields of their node.
# - File-level checks depend on the asset kind (biome wrapper, NoiseRange).
#
# Public API:
# - collect_export_issues(tree, file_path=None) -> list[ExportIssue]
# - lint_export(tree, file_path=None) -> list[str]
# - assert_clean_export(tree, file_path=None) -> None  (raises ExportLintError)

from __future__ import annotations

from dataclasses import dataclass
from typing import Any

from ..core.errors import ExportLintError

ROOT_PATH = "root"


@dataclass
class ExportIssue:
    path: str
    message: str
    code: str = "invalid"

    @property
    def warning(self) -> str:
        return f"{self.path}: {self.message}" if self.path else self.message

    def __str__(self) -> str:
        return f"{self.warning} ({self.code})"


def _require(cond: bool, issues: list[ExportIssue], path: str, msg: str, code: str = "invalid") -> None:
    if not cond:
        issues.append(ExportIssue(path=path, message=msg, code=code))


def _is_biome(tree: dict[str, Any], file_path: str | None) -> bool:
    path = (file_path or "").lower().replace("\\", "/")
    return "/biomes/" in path or ("Name" in tree and "Terrain" in tree)


def _has_type(value: Any) -> bool:
    return isinstance(value, dict) and "Type" in value


class ExportLinter:
    """Structural lint for native asset trees."""

    def __init__(self, file_path: str | None = None) -> None:
        self.file_path = file_path

    def lint(self, tree: Any) -> list[ExportIssue]:
        issues: list[ExportIssue] = []
        if not isinstance(tree, dict):
            _require(False, issues, ROOT_PATH, f"Asset must be an object, got: {type(tree).__name__}", "type")
            return issues

        if _is_biome(tree, self.file_path):
            _require(bool(tree.get("Name")), issues, "", "Biome missing Name field", "required")
            terrain = tree.get("Terrain")
            _require(isinstance(terrain, dict) and bool(terrain.get("Density")), issues, "", "Biome missing Terrain.Density", "required")
        elif tree.get("Type") == "NoiseRange":
            _require(bool(tree.get("DefaultBiome")), issues, "", "NoiseRange missing DefaultBiome", "required")
            _require(bool(tree.get("Density")), issues, "", "NoiseRange missing Density", "required")

        self._check_node(tree, ROOT_PATH, issues)
        return issues

    def _check_node(self, node: dict[str, Any], path: str, issues: list[ExportIssue]) -> None:
        if "Type" in node:
            t = node["Type"]
            _require(isinstance(t, str) and bool(t), issues, path, "Node has empty or invalid Type", "type")

        for key, value in node.items():
            if key.startswith("$"):
                continue
            _require(value is not None, issues, f"{path}.{key}", "null or undefined value", "null")

            if key == "Material" and isinstance(value, dict) and "Solid" in value:
                solid = value["Solid"]
                _require(isinstance(solid, str) and bool(solid), issues, f"{path}.Material.Solid", "empty material string", "material")

            if _has_type(value):
                self._check_node(value, f"{path}.{key}", issues)
            elif isinstance(value, list):
                for i, item in enumerate(value):
                    if _has_type(item):
                        self._check_node(item, f"{path}.{key}[{i}]", issues)


def collect_export_issues(tree: Any, file_path: str | None = None) -> list[ExportIssue]:
    return ExportLinter(file_path=file_path).lint(tree)


def lint_export(tree: Any, file_path: str | None = None) -> list[str]:
    """
    Lint a native tree before export.

    Returns:
        warning strings, empty when the tree looks clean
    """
    return [issue.warning for issue in collect_export_issues(tree, file_path=file_path)]


def assert_clean_export(tree: Any, file_path: str | None = None) -> None:
    """
    Lint and raise ExportLintError listing every issue found.
    """
    issues = collect_export_issues(tree, file_path=file_path)
    if issues:
        lines = [f"- {str(i)}" for i in issues]
        raise ExportLintError("Export lint failed:\n" + "\n".join(lines))


__all__ = [
    "ExportIssue",
    "ExportLinter",
    "collect_export_issues",
    "lint_export",
    "assert_clean_export",
]
