#!/usr/bin/env python3
"""
Entry point for the Giuseppe's Kitchen gate service.
"""

import os

import uvicorn

if __name__ == "__main__":
    uvicorn.run(
        "kitchen_gate.main:app",
        host=os.getenv("API_HOST", "0.0.0.0"),
        port=int(os.getenv("API_PORT", "8000")),
        reload=os.getenv("API_RELOAD", "false").lower() == "true",
        log_level=os.getenv("LOG_LEVEL", "info").lower(),
        proxy_headers=True,
        forwarded_allow_ips=os.getenv("FORWARDED_ALLOW_IPS", "127.0.0.1"),
    )
