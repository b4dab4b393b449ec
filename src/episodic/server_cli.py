"""CLI entry point for the Episodic API server."""

import argparse
import os


def main(argv: list[str] | None = None) -> None:
    parser = argparse.ArgumentParser(
        prog="episodic-server",
        description="Episodic interaction API: reactions and notification feeds",
    )
    parser.add_argument("--host", default="0.0.0.0", help="Bind host (default: 0.0.0.0)")
    parser.add_argument("--port", type=int, default=8080, help="Bind port (default: 8080)")
    parser.add_argument(
        "--local",
        action="store_true",
        help="Local dev mode: SQLite database, no Redis required",
    )
    parser.add_argument("--log-level", default=None, help="Override EPISODIC_LOG_LEVEL")
    args = parser.parse_args(argv)

    if args.local:
        os.environ["EPISODIC_LOCAL_MODE"] = "1"
    if args.log_level:
        os.environ["EPISODIC_LOG_LEVEL"] = args.log_level

    import uvicorn

    uvicorn.run("episodic.main:app", host=args.host, port=args.port)


if __name__ == "__main__":
    main()
