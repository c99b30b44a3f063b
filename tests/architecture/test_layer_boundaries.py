"""
Layer boundary contract.

1. procurement_kernel/** may NOT import procurement_config or
   procurement_services.  The kernel never depends upward.
2. procurement_config/** may NOT import procurement_services.
3. Only procurement_config reads environment variables.

These tests read source code via AST and cannot break anything.
"""

import ast
from pathlib import Path

ROOT = Path(__file__).resolve().parents[2]


def _python_files(package: str) -> list[Path]:
    return sorted((ROOT / package).rglob("*.py"))


def _parse(path: Path) -> ast.Module:
    return ast.parse(path.read_text(encoding="utf-8"), filename=str(path))


def _extract_imports(path: Path) -> list[tuple[int, str]]:
    """Extract (line_number, module_string) for all imports in a file."""
    results: list[tuple[int, str]] = []
    for node in ast.walk(_parse(path)):
        if isinstance(node, ast.Import):
            for alias in node.names:
                results.append((node.lineno, alias.name))
        elif isinstance(node, ast.ImportFrom) and node.module:
            results.append((node.lineno, node.module))
    return results


def _violations(package: str, forbidden: tuple[str, ...]) -> list[str]:
    found = []
    for path in _python_files(package):
        for lineno, module in _extract_imports(path):
            if any(module == p or module.startswith(f"{p}.") for p in forbidden):
                found.append(f"  {path.relative_to(ROOT)}:{lineno} imports '{module}'")
    return found


class TestNoUpwardDependencies:

    def test_packages_exist(self):
        for package in ("procurement_kernel", "procurement_config", "procurement_services"):
            assert _python_files(package), f"{package} not found under {ROOT}"

    def test_kernel_imports_nothing_above_it(self):
        violations = _violations(
            "procurement_kernel", ("procurement_config", "procurement_services")
        )

        assert not violations, (
            "procurement_kernel/** must not import config or services:\n"
            + "\n".join(violations)
        )

    def test_config_does_not_import_services(self):
        violations = _violations("procurement_config", ("procurement_services",))

        assert not violations, "\n".join(violations)


class TestEnvironmentAccess:

    def test_only_config_reads_environment(self):
        offenders = []
        for package in ("procurement_kernel", "procurement_services"):
            for path in _python_files(package):
                for node in ast.walk(_parse(path)):
                    if (
                        isinstance(node, ast.Attribute)
                        and node.attr in ("environ", "getenv")
                        and isinstance(node.value, ast.Name)
                        and node.value.id == "os"
                    ):
                        offenders.append(f"  {path.relative_to(ROOT)}:{node.lineno}")

        assert not offenders, "\n".join(offenders)
