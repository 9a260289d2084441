from __future__ import annotations

import argparse
import json
import logging
import sys

from routines.domain.errors import CollaboratorReadError, InputError
from routines.infra.db import init_db
from routines.infra.logging import setup_logging
from routines.services.container import build_services
from routines.services.triggers import close_overdue_tasks, generate_tasks

logger = logging.getLogger(__name__)


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(description="Recurring routine task engine")
    subcommands = parser.add_subparsers(dest="command", required=True)

    generate = subcommands.add_parser("generate", help="Materialize the tasks due on a date")
    generate.add_argument("--date", help="Target date (YYYY-MM-DD); defaults to today in the operating timezone")
    generate.add_argument("--triggered-by", default="scheduler", help="Recorded in the system audit log")

    subcommands.add_parser("close", help="Mark open tasks past their deadline as missed")

    server = subcommands.add_parser("serve", help="Serve the HTTP API")
    server.add_argument("--host", default="0.0.0.0")
    server.add_argument("--port", type=int, default=8000)
    return parser


def serve(host: str, port: int) -> int:
    import uvicorn

    from routines.api import app

    logger.info("Serving the HTTP API on %s:%s", host, port)
    uvicorn.run(app, host=host, port=port, log_config=None)
    return 0


def main(argv: list[str] | None = None) -> int:
    args = build_parser().parse_args(argv)
    setup_logging()
    init_db()
    if args.command == "serve":
        return serve(args.host, args.port)

    services = build_services()

    try:
        if args.command == "generate":
            result = generate_tasks(
                services.materializer,
                args.date,
                services.timezone,
                triggered_by=args.triggered_by,
            )
        else:
            result = close_overdue_tasks(services.tasks)
    except InputError as exc:
        print(json.dumps({"success": False, "message": str(exc)}))
        return 2
    except CollaboratorReadError as exc:
        logger.error("Run aborted: %s", exc)
        print(json.dumps({"success": False, "generatedCount": 0, "message": str(exc), "skipReasons": []}))
        return 1

    print(json.dumps(result))
    return 0


if __name__ == "__main__":
    sys.exit(main())
