#!/usr/bin/env python3
"""
Start the discount engine API with uvicorn. Creates the SQLite tables on
first run.
"""
import sys

if __name__ == "__main__":
    import uvicorn
    from discount_engine.core.config import settings
    from discount_engine.core.database import init_db

    try:
        init_db()
    except Exception as e:
        print(f"Database initialisation failed: {e}", file=sys.stderr)
        raise

    uvicorn.run(
        "discount_engine.main:app",
        host=settings.HOST,
        port=settings.PORT,
        reload=False,
        log_level="debug" if settings.DEBUG else "info",
    )
