#!/usr/bin/env python
"""Run the poetrysuite API with uvicorn."""
import os

import uvicorn


def main() -> None:
    uvicorn.run(
        "poetrysuite.main:app",
        host=os.getenv("HOST", "127.0.0.1"),
        port=int(os.getenv("PORT", "8000")),
        reload=os.getenv("ENV", "development") == "development",
    )


if __name__ == "__main__":
    main()
