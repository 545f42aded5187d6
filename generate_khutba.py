#!/usr/bin/env python3
"""
Convenience script to run the khutba generator from the project root.
"""
import subprocess
import sys
from pathlib import Path

def main():
    """Run the CLI from the src folder."""
    script_path = Path(__file__).parent / "src" / "khutba_cli.py"

    cmd = [sys.executable, str(script_path)] + sys.argv[1:]
    return subprocess.run(cmd).returncode

if __name__ == "__main__":
    sys.exit(main())
