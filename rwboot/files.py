"""Development helper files written into a generated project."""

from __future__ import annotations

import json
import logging
import stat
from pathlib import Path

logger = logging.getLogger(__name__)

TEST_SCRIPTS = {
    "test": "vitest",
    "test:ui": "vitest --ui",
    "test:run": "vitest run",
}


def _env_template() -> str:
    return "\n".join([
        "# RedwoodSDK Coding Agent Environment",
        "# This file is automatically symlinked to .dev.vars for Wrangler",
        "",
        "# Development settings",
        "NODE_ENV=development",
        "DATABASE_URL=file:./data.db",
        "",
        "# Placeholder for API tokens (configure as needed)",
        "# API_TOKEN=your_api_token_here",
        "# CLOUDFLARE_API_TOKEN=your_cloudflare_token",
        "",
        "# Database configuration",
        "# For D1 local development",
        "DB_LOCAL_PATH=./data.db",
        "",
        "# Testing configuration",
        "VITEST_ENVIRONMENT=miniflare",
        "",
    ])


def _script_template(comment: str, message: str, command: str) -> str:
    return (
        "#!/bin/bash\n"
        f"# {comment}\n"
        f'echo "{message}"\n'
        f"{command}\n"
    )


_SCRIPTS = {
    "dev.sh": ("Development server startup script", "Starting RedwoodSDK development server...", "npm run dev"),
    "test.sh": ("Test runner script", "Running tests...", "npm run test:run"),
    "build.sh": ("Build script", "Building project...", "npm run build"),
}


def _worker_test_template() -> str:
    return (
        "import { describe, it, expect } from 'vitest'\n"
        "\n"
        "describe('Worker Tests', () => {\n"
        "  it('should pass basic test', () => {\n"
        "    expect(true).toBe(true)\n"
        "  })\n"
        "})\n"
    )


def _pre_commit_template() -> str:
    return (
        "#!/bin/bash\n"
        "# Pre-commit hook: regenerate types and run tests\n"
        'echo "Running pre-commit checks..."\n'
        "\n"
        "if command -v wrangler >/dev/null 2>&1; then\n"
        '    echo "Generating types..."\n'
        "    wrangler types 2>/dev/null || true\n"
        "fi\n"
        "\n"
        "if [ -f \"package.json\" ] && grep -q '\"test\"' package.json; then\n"
        '    echo "Running tests..."\n'
        "    npm run test:run 2>/dev/null || true\n"
        "fi\n"
    )


def _make_executable(path: Path) -> None:
    mode = path.stat().st_mode
    path.chmod(mode | stat.S_IXUSR | stat.S_IXGRP | stat.S_IXOTH)


def add_test_scripts(package_json: Path) -> bool:
    """Merge the vitest scripts into ``package.json``; False if there is no usable file."""
    if not package_json.is_file():
        return False
    try:
        data = json.loads(package_json.read_text(encoding="utf-8"))
    except json.JSONDecodeError:
        logger.warning("Could not parse %s; test scripts not added", package_json)
        return False
    if not isinstance(data, dict):
        return False
    scripts = data.setdefault("scripts", {})
    scripts.update(TEST_SCRIPTS)
    package_json.write_text(json.dumps(data, indent=2) + "\n", encoding="utf-8")
    return True


def write_project_files(project_dir: Path) -> list[str]:
    """Write the development environment files.

    Returns the list of created file paths, relative to ``project_dir``.
    """
    base = Path(project_dir)
    created: list[str] = []

    def _write(rel_path: str, content: str, *, executable: bool = False) -> None:
        path = base / rel_path
        path.parent.mkdir(parents=True, exist_ok=True)
        path.write_text(content, encoding="utf-8")
        if executable:
            _make_executable(path)
        created.append(rel_path)

    _write(".env", _env_template())
    _write("src/__tests__/worker.test.ts", _worker_test_template())
    for filename, (comment, message, command) in _SCRIPTS.items():
        _write(f"scripts/{filename}", _script_template(comment, message, command), executable=True)

    if (base / ".git").is_dir():
        _write(".git/hooks/pre-commit", _pre_commit_template(), executable=True)

    if add_test_scripts(base / "package.json"):
        created.append("package.json")

    return created
