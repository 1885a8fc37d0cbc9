"""
Browser download helper, installed as the `linkprobe-postinstall` command.

pip installs the Playwright driver but not the Chromium build it controls.
"""
import subprocess
import sys

INSTALL_COMMAND = [sys.executable, "-m", "playwright", "install", "chromium"]


def postinstall() -> int:
    """
    Download Chromium for Playwright.

    Returns:
        0 when Chromium is installed, 1 otherwise
    """
    print(f"Installing Chromium: {' '.join(INSTALL_COMMAND[1:])}")
    completed = subprocess.run(INSTALL_COMMAND, capture_output=True, text=True)

    if completed.returncode != 0:
        print(
            f"Chromium install failed with exit code {completed.returncode}",
            file=sys.stderr,
        )
        if completed.stderr:
            print(completed.stderr, file=sys.stderr)
        print("Retry by hand with: python -m playwright install chromium", file=sys.stderr)
        return 1

    if completed.stdout:
        print(completed.stdout)
    print("Chromium is ready.")
    return 0


if __name__ == "__main__":
    sys.exit(postinstall())
