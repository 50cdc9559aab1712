#!/usr/bin/env python3
"""
Run the workspace collaboration server.

This script starts the WebSocket collaboration server, and the ops API when
COLLAB_API_ENABLED is set, using configuration from the environment or .env.
"""

import sys
from pathlib import Path

# Add src directory to Python path
src_path = Path(__file__).parent / "src"
if str(src_path) not in sys.path:
    sys.path.insert(0, str(src_path))

from workspace_collab.websockets.server.collab_server import run

if __name__ == "__main__":
    run()
