"""CLI app entrypoint and error mapping."""

from __future__ import annotations

import sys

from tilesync import ConfigError, NegotiationError, RemoteServiceError, StoreError, TileSyncError


def main(argv: list[str] | None = None) -> int:
    import tilesync.cli as cli

    parser = cli.build_parser()
    args = parser.parse_args(argv)

    if args.verbose:
        cli.logging.basicConfig(level=cli.logging.DEBUG, format="%(name)s %(message)s", stream=sys.stderr)

    try:
        if args.command == "sync":
            cli.asyncio.run(cli._run_sync(args))
        elif args.command == "watch":
            cli.asyncio.run(cli._run_watch(args))
        elif args.command == "tiles":
            cli.asyncio.run(cli._run_tiles(args))
        return 0
    except KeyboardInterrupt:
        print("interrupted", file=sys.stderr)
        return 130
    except ConfigError as exc:
        print(f"error: {exc}", file=sys.stderr)
        return 3
    except (NegotiationError, RemoteServiceError) as exc:
        print(f"error: {exc}", file=sys.stderr)
        return 4
    except StoreError as exc:
        print(f"error: {exc}", file=sys.stderr)
        return 5
    except TileSyncError as exc:
        print(f"error: {exc}", file=sys.stderr)
        return 1
    except Exception as exc:  # pragma: no cover - defensive fallback
        print(f"error: {exc}", file=sys.stderr)
        return 1


__all__ = ["main"]
