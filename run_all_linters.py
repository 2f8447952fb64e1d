#!/usr/bin/env python3
"""Run every formatter check, linter and the test suite in one go.

Order: black, isort, ruff, pylint, pytest. Output is collected and the
failures are repeated at the end so they are easy to find.
"""

from pathlib import Path
import subprocess
import sys

PACKAGES = ["app", "core", "infrastructure", "main.py"]

COMMANDS = [
    (["python", "-m", "black", ".", "--check"], "black format check"),
    (["python", "-m", "isort", ".", "--check-only"], "isort import order check"),
    (["python", "-m", "ruff", "check", "."], "ruff static check"),
    (["python", "-m", "pylint", *PACKAGES], "pylint static analysis"),
    (["python", "-m", "pytest", "-q"], "pytest"),
]


def run_command(cmd: list[str], description: str) -> tuple[bool, str]:
    """Run `cmd` from the repo root and return (success, combined output)."""
    print(f"\n{'=' * 60}\n{description}: {' '.join(cmd)}\n{'=' * 60}")
    try:
        result = subprocess.run(
            cmd, capture_output=True, text=True, check=False, cwd=Path(__file__).parent
        )
    except OSError as e:
        print(f"FAILED to start: {e}")
        return False, str(e)

    output = result.stdout + result.stderr
    success = result.returncode == 0
    print("OK" if success else "FAILED")
    if output.strip():
        print(output)
    return success, output


def main() -> None:
    results = [(desc, *run_command(cmd, desc)) for cmd, desc in COMMANDS]

    print(f"\n{'=' * 60}\nSummary\n{'=' * 60}")
    for description, success, _ in results:
        print(f"{description}: {'passed' if success else 'FAILED'}")

    failed = [(d, out) for d, ok, out in results if not ok]
    for description, output in failed:
        if output.strip():
            print(f"\n--- {description} ---\n{output}")
    sys.exit(1 if failed else 0)


if __name__ == "__main__":
    main()
