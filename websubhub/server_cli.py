"""CLI entry point for the WebSub hub server."""

import argparse

from .config import settings


def main(argv: list[str] | None = None) -> None:
    parser = argparse.ArgumentParser(
        prog="websubhub",
        description="WebSub hub: verifies subscribers and fans out signed content",
    )
    parser.add_argument("--host", default=settings.HOST, help="Bind host")
    parser.add_argument("--port", type=int, default=settings.PORT, help="Bind port")
    args = parser.parse_args(argv)

    import uvicorn

    uvicorn.run("websubhub.main:app", host=args.host, port=args.port)


if __name__ == "__main__":
    main()
