#!/usr/bin/env python3
"""
Run script for the Dealflow API
"""

import uvicorn
import os
import sys
from pathlib import Path

# Add the current directory to Python path
sys.path.insert(0, str(Path(__file__).parent))

def main():
    """Main function to run the FastAPI application"""

    # Configuration
    host = os.getenv("HOST", "0.0.0.0")
    port = int(os.getenv("PORT", 8000))
    reload = os.getenv("RELOAD", "true").lower() == "true"
    log_level = os.getenv("LOG_LEVEL", "info").lower()

    print(f"Starting Dealflow API on {host}:{port} (reload={reload}, log level={log_level})")
    print(f"API Documentation: http://{host}:{port}/docs")

    try:
        uvicorn.run(
            "main:app",
            host=host,
            port=port,
            reload=reload,
            log_level=log_level,
            access_log=True
        )
    except KeyboardInterrupt:
        print("\nApplication stopped by user")

if __name__ == "__main__":
    main()
