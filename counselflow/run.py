#!/usr/bin/env python3
"""
Quick runner for the Contracts API
==================================

Usage:
    python -m counselflow.run
"""

import uvicorn

if __name__ == "__main__":
    print("Starting CounselFlow Contracts API...")
    print("API docs: http://localhost:8000/docs")
    print("Health:   http://localhost:8000/health")
    print()

    uvicorn.run(
        "counselflow.api:app",
        host="0.0.0.0",
        port=8000,
        reload=True
    )
