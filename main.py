"""Run toxscan from a source checkout, e.g. `python main.py run drivers.json`."""

import sys
from pathlib import Path

sys.path.insert(0, str(Path(__file__).resolve().parent / "src"))

if __name__ == "__main__":
    from cli.main import app

    app(prog_name="toxscan")
