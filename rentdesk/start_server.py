#!/usr/bin/env python3
"""
Server startup wrapper for the RentDesk entitlements API.
"""
import os
import sys


def main():
    host = os.getenv("HOST", "0.0.0.0")
    port = int(os.getenv("PORT", "8000"))

    print("[RentDesk] Starting entitlements service")
    print(f"[RentDesk] Server: http://{host}:{port}")
    print("[RentDesk] Press CTRL+C to stop")

    try:
        import uvicorn
        uvicorn.run(
            "rentdesk.main:app",
            host=host,
            port=port,
            reload=False,
            log_level="info",
            access_log=True,
        )
    except KeyboardInterrupt:
        print("\n[RentDesk] Shutting down...")
        sys.exit(0)


if __name__ == "__main__":
    main()
