import os

import uvicorn


def main() -> None:
    """Run the visitor geolocation API with uvicorn.

    APP_HOST/APP_PORT select the bind address; APP_RELOAD=1 enables autoreload for local work.
    """
    uvicorn.run(
        "visitor_geo.main:app",
        host=os.getenv("APP_HOST", "127.0.0.1"),
        port=int(os.getenv("APP_PORT", "8000")),
        reload=os.getenv("APP_RELOAD", "0") == "1",
        log_config=None,  # visitor_geo.logger configures logging on import
    )


if __name__ == "__main__":
    main()
