import sys
import uvloop
from web3 import AsyncWeb3, AsyncHTTPProvider

from . import config
from .checkpoint import CheckpointStore
from .errors import PersistenceError, ResolutionError, TransportError
from .explorer import ExplorerClient
from .indexer import Backfill


async def main():
    w3 = AsyncWeb3(AsyncHTTPProvider(config.RPC_URL))
    store = CheckpointStore(config.output_path())
    print(f"Backfilling {config.ADDRESS} -> {store.path} (selection={config.LOG_SELECTION}, conc={config.RECEIPT_CONC})")
    try:
        async with ExplorerClient(config.OKLINK_KEY) as explorer:
            return await Backfill(w3, explorer, store, config.ADDRESS).run()
    finally:
        store.close()


def cli():
    try:
        config.require()
    except SystemExit as e:
        print(e, file=sys.stderr)
        sys.exit(2)
    try:
        stats = uvloop.run(main())
    except (PersistenceError, TransportError, ResolutionError) as e:
        print(f"[abort] {e.__class__.__name__}: {e}", file=sys.stderr)
        sys.exit(1)
    print(f"Finished: {stats.outcome}")


if __name__ == "__main__":
    cli()
