from __future__ import annotations

import argparse
import asyncio
from collections.abc import AsyncIterator

from worker.config import get_settings
from worker.factory import build_components
from worker.logging_config import configure_logging
from worker.models import CatalogItem
from worker.publish import ShopifyClient
from worker.store import SyncRun


async def _limited_pages(storefront: ShopifyClient, max_pages: int | None) -> AsyncIterator[list[CatalogItem]]:
    count = 0
    async for page in storefront.iter_pages():
        yield page
        count += 1
        if max_pages is not None and count >= max_pages:
            return


async def run_once(force: bool, max_pages: int | None, item_delay_seconds: float | None) -> SyncRun:
    settings = get_settings()
    if item_delay_seconds is not None:
        settings = settings.model_copy(update={"sweep_item_delay_seconds": item_delay_seconds})
    components = build_components(settings)
    try:
        return await components.core.sweep(_limited_pages(components.storefront, max_pages), force=force)
    finally:
        await components.aclose()


def main() -> None:
    parser = argparse.ArgumentParser(description="Catalog sync sweep worker")
    parser.add_argument("--force", action="store_true", help="Reprocess every item regardless of markers and fingerprints")
    parser.add_argument("--max-pages", type=int, default=None)
    parser.add_argument("--item-delay-seconds", type=float, default=None)

    args = parser.parse_args()
    settings = get_settings()
    configure_logging(settings.log_level, settings.log_file)

    run = asyncio.run(
        run_once(
            force=args.force,
            max_pages=max(1, args.max_pages) if args.max_pages is not None else None,
            item_delay_seconds=max(0.0, args.item_delay_seconds) if args.item_delay_seconds is not None else None,
        )
    )
    print(
        f"run={run.id} status={run.status} total={run.items_total} "
        f"processed={run.items_processed} skipped={run.items_skipped} failed={run.items_failed}"
    )


if __name__ == "__main__":
    main()
