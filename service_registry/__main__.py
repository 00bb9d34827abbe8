from __future__ import annotations

import argparse
import logging

from .config import load_config, merge_cli_args

logger = logging.getLogger(__name__)


def build_parser() -> argparse.ArgumentParser:
    p = argparse.ArgumentParser(prog="service-registry", description="Service registry HTTP server")
    p.add_argument("--host", default=None)
    p.add_argument("--port", type=int, default=None)
    p.add_argument("--db-backend", dest="db_backend", choices=["sqlite", "postgres"], default=None)
    p.add_argument("--db-uri", dest="db_uri", default=None)
    p.add_argument("--db-timeout", dest="db_timeout_s", type=float, default=None)
    p.add_argument("--no-migrate", dest="migrate", action="store_const", const=False, default=None)
    p.add_argument("--log-level", default="info")
    return p


def main(argv: list[str] | None = None) -> None:
    args = build_parser().parse_args(argv)
    cfg = merge_cli_args(load_config(), args)

    import uvicorn

    from .api import create_app
    from .core import create_registry_env

    logging.basicConfig(level=args.log_level.upper())
    env = create_registry_env(cfg)
    app = create_app(env)

    logger.info("Started service-registry listening on %s:%d", cfg.host, cfg.port)
    try:
        uvicorn.run(app, host=cfg.host, port=cfg.port, log_level=args.log_level)
    finally:
        env.close()


if __name__ == "__main__":
    main()
