from __future__ import annotations

from leavesync.ui.cli import run

if __name__ == "__main__":
    run()
