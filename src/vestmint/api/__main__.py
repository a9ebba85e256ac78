# src/vestmint/api/__main__.py
from __future__ import annotations

import argparse
import json
import os
import sys
from typing import List, Optional

import uvicorn

from vestmint.env import load_dotenv_if_present


def _parse_args(argv: List[str]) -> argparse.Namespace:
    ap = argparse.ArgumentParser(description="vestmint node API (FastAPI + SQLite ledger)")
    ap.add_argument("--config", dest="config_path", default=None, help="node config JSON (else VESTMINT_CONFIG_PATH / env)")
    ap.add_argument("--host", dest="host", default=None)
    ap.add_argument("--port", dest="port", type=int, default=None)
    ap.add_argument(
        "--check",
        dest="check",
        action="store_true",
        help="validate config, open (or create) the ledger, print a summary and exit",
    )
    return ap.parse_args(argv)


def main(argv: Optional[List[str]] = None) -> int:
    args = _parse_args(sys.argv[1:] if argv is None else argv)

    # Load .env early so VESTMINT_* vars exist before anything reads them.
    load_dotenv_if_present()

    # Import after dotenv load (prevents "config read before env" surprises)
    from vestmint.api.app import create_app
    from vestmint.runtime.executor import VestMintExecutor
    from vestmint.runtime.node_config import load_node_config

    if args.config_path:
        # create_app() reads the node config again when it builds the executor.
        os.environ["VESTMINT_CONFIG_PATH"] = str(args.config_path)
    cfg = load_node_config()

    if args.check:
        ex = VestMintExecutor.from_config(cfg)
        view = ex.view()
        print(
            json.dumps(
                {"chain_id": ex.chain_id, "db_path": cfg.db_path, "owner": view.owner, "time": view.now},
                sort_keys=True,
            )
        )
        return 0

    uvicorn.run(
        create_app(),
        host=args.host or cfg.api_host,
        port=int(args.port or cfg.api_port),
        log_level=cfg.log_level.lower(),
    )
    return 0


if __name__ == "__main__":
    raise SystemExit(main())
