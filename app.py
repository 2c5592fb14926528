#!/usr/bin/env python3
"""
Node Monitor - Main Application Entry Point.

============================================================
SINGLE ENTRYPOINT
============================================================
This is the ONE executable entry point of the monitor.

- Compatible with PM2 / Kubernetes process management
- Can be started, stopped, and restarted safely
- All configuration comes from the environment (or `.env`)

============================================================
USAGE
============================================================
Direct execution:
    python app.py

Single pass:
    python app.py --once

Environment-based configuration:
    NODE_ENV=production BETTERSTACK_API_KEY=... THORNODE_ADDRESS=thor1... python app.py

============================================================
"""

import sys
from pathlib import Path

# Add project root to path
PROJECT_ROOT = Path(__file__).parent.absolute()
if str(PROJECT_ROOT) not in sys.path:
    sys.path.insert(0, str(PROJECT_ROOT))

from orchestrator.cli import main


if __name__ == "__main__":
    sys.exit(main())
