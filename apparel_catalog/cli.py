import argparse
import asyncio
import json
import logging
import sys
from dataclasses import asdict
from typing import List, Optional

from apparel_catalog.db import SessionLocal
from apparel_catalog.exceptions import CanonicalMappingError, CatalogError
from apparel_catalog.importers.sanmar_catalog import SanmarCatalogImporter
from apparel_catalog.importers.sanmar_dip import SanmarDipImporter
from apparel_catalog.importers.ssactivewear_catalog import SsActivewearCatalogImporter
from apparel_catalog.importers.ssactivewear_inventory import SsActivewearInventoryImporter
from apparel_catalog.schemas.search import SearchOptions
from apparel_catalog.services.canonical_mapping import CanonicalMappingTable, load_canonical_mapping
from apparel_catalog.services.canonical_style import CanonicalStyleRegistry
from apparel_catalog.services.catalog_context import build_catalog_context, build_shared_resources
from apparel_catalog.services.inventory_matrix import InventoryMatrixBuilder
from apparel_catalog.settings import settings
from apparel_catalog.ssactivewear_client import SsActivewearClient
from apparel_catalog.suppliers import parse_supplier

logger = logging.getLogger("apparel_catalog.cli")


def _split(value: Optional[str]) -> Optional[List[str]]:
    if not value:
        return None
    items = [item.strip() for item in value.split(",") if item.strip()]
    return items or None


def _print_json(payload) -> None:
    print(json.dumps(payload, indent=2, ensure_ascii=False, default=str))


def _require_ssa_credentials() -> None:
    if not settings.ssactivewear_account_number or not settings.ssactivewear_api_key:
        raise CatalogError(
            "SSACTIVEWEAR_ACCOUNT_NUMBER and SSACTIVEWEAR_API_KEY must be set",
            error_code="CONFIG_ERROR",
        )


def cmd_import_sanmar_catalog(args) -> None:
    with SessionLocal() as session:
        registry = CanonicalStyleRegistry(session, load_canonical_mapping(settings.canonical_mapping_path))
        result = SanmarCatalogImporter(session, registry).run(
            args.path or settings.sanmar_sdl_path, limit=args.limit, dry_run=args.dry_run
        )
    logger.info(f"[CLI] SanMar catalog import finished: {result}")


def cmd_import_sanmar_dip(args) -> None:
    with SessionLocal() as session:
        result = SanmarDipImporter(session).run(
            args.path or settings.sanmar_dip_path, style_filter=_split(args.styles), dry_run=args.dry_run
        )
    logger.info(f"[CLI] SanMar DIP import finished: {result}")
    if result.missing_styles:
        logger.warning(f"[CLI] Styles without inventory rows: {', '.join(result.missing_styles)}")


async def _run_ssa_catalog(args):
    async with SsActivewearClient.from_settings(settings) as client:
        with SessionLocal() as session:
            registry = CanonicalStyleRegistry(session, load_canonical_mapping(settings.canonical_mapping_path))
            importer = SsActivewearCatalogImporter(session, client, registry)
            return await importer.run(
                brands=_split(args.brands),
                categories=_split(args.categories),
                limit=args.limit,
                dry_run=args.dry_run,
            )


def cmd_import_ssa_catalog(args) -> None:
    _require_ssa_credentials()
    result = asyncio.run(_run_ssa_catalog(args))
    logger.info(f"[CLI] S&S catalog import finished: {result}")


async def _run_ssa_inventory(args):
    async with SsActivewearClient.from_settings(settings) as client:
        with SessionLocal() as session:
            importer = SsActivewearInventoryImporter(session, client)
            return await importer.run(brands=_split(args.brands), limit=args.limit)


def cmd_import_ssa_inventory(args) -> None:
    _require_ssa_credentials()
    result = asyncio.run(_run_ssa_inventory(args))
    logger.info(f"[CLI] S&S inventory import finished: {result}")


def cmd_validate_mapping(args) -> None:
    path = args.path or settings.canonical_mapping_path
    try:
        table = CanonicalMappingTable.load(path)
    except CanonicalMappingError as e:
        logger.error(f"[CLI] Mapping invalid: {e.message} {e.context}")
        sys.exit(1)
    logger.info(f"[CLI] Mapping {path} OK: {len(table)} canonical styles")


async def _run_search(args):
    shared = build_shared_resources()
    try:
        with SessionLocal() as session:
            context = build_catalog_context(session, shared)
            options = SearchOptions(
                query=args.query,
                suppliers=[parse_supplier(s) for s in _split(args.suppliers) or []] or None,
                sort=args.sort,
                limit=args.limit,
                offset=args.offset,
                in_stock_only=args.in_stock_only,
            )
            return await context.search.search(options)
    finally:
        await shared.aclose()


def cmd_search(args) -> None:
    page = asyncio.run(_run_search(args))
    _print_json(page.model_dump(mode="json"))


async def _run_show_product(args):
    shared = build_shared_resources()
    try:
        with SessionLocal() as session:
            context = build_catalog_context(session, shared)
            bundle = await context.loader.load(args.identifier)
            matrices = {}
            if args.matrix:
                builder = InventoryMatrixBuilder()
                for supplier in bundle.inventory:
                    matrix = builder.build_for_bundle(bundle, supplier, args.color)
                    if matrix is not None:
                        matrices[supplier.value] = asdict(matrix)
            return bundle, matrices
    finally:
        await shared.aclose()


def cmd_show_product(args) -> None:
    bundle, matrices = asyncio.run(_run_show_product(args))
    if bundle.is_empty:
        logger.error(f"[CLI] Nothing found for {args.identifier}")
        sys.exit(1)
    payload = bundle.model_dump(mode="json")
    if matrices:
        payload["matrices"] = matrices
    _print_json(payload)


COMMANDS = {
    "import-sanmar-catalog": cmd_import_sanmar_catalog,
    "import-sanmar-dip": cmd_import_sanmar_dip,
    "import-ssa-catalog": cmd_import_ssa_catalog,
    "import-ssa-inventory": cmd_import_ssa_inventory,
    "validate-mapping": cmd_validate_mapping,
    "search": cmd_search,
    "show-product": cmd_show_product,
}


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(description="Apparel catalog operations CLI")
    subparsers = parser.add_subparsers(dest="command", help="Available commands")

    p = subparsers.add_parser("import-sanmar-catalog", help="Import the SanMar SDL product file")
    p.add_argument("--path", help="SDL CSV path (defaults to SANMAR_SDL_PATH)")
    p.add_argument("--limit", type=int, help="Only read the first N rows")
    p.add_argument("--dry-run", action="store_true")

    p = subparsers.add_parser("import-sanmar-dip", help="Replace SanMar inventory from a DIP file")
    p.add_argument("--path", help="DIP file path (defaults to SANMAR_DIP_PATH)")
    p.add_argument("--styles", help="Comma-separated style numbers to restrict the import to")
    p.add_argument("--dry-run", action="store_true")

    p = subparsers.add_parser("import-ssa-catalog", help="Import S&S Activewear styles")
    p.add_argument("--brands", help="Comma-separated brand names")
    p.add_argument("--categories", help="Comma-separated base categories")
    p.add_argument("--limit", type=int)
    p.add_argument("--dry-run", action="store_true")

    p = subparsers.add_parser("import-ssa-inventory", help="Refresh S&S Activewear inventory for stored products")
    p.add_argument("--brands", help="Comma-separated brand names")
    p.add_argument("--limit", type=int)

    p = subparsers.add_parser("validate-mapping", help="Validate the canonical mapping file")
    p.add_argument("--path", help="Mapping JSON path (defaults to CANONICAL_MAPPING_PATH)")

    p = subparsers.add_parser("search", help="Search canonical styles")
    p.add_argument("query")
    p.add_argument("--suppliers", help="Comma-separated suppliers (SANMAR, SSACTIVEWEAR)")
    p.add_argument("--sort", choices=["relevance", "supplier", "price", "stock"], default="relevance")
    p.add_argument("--limit", type=int, default=20)
    p.add_argument("--offset", type=int, default=0)
    p.add_argument("--in-stock-only", action="store_true")

    p = subparsers.add_parser("show-product", help="Load the supplier bundle for a style or part number")
    p.add_argument("identifier")
    p.add_argument("--matrix", action="store_true", help="Include warehouse x size inventory grids")
    p.add_argument("--color", help="Restrict the grids to one color code")

    return parser


def main(argv: Optional[List[str]] = None) -> None:
    parser = build_parser()
    args = parser.parse_args(argv)

    logging.basicConfig(
        level=getattr(logging, settings.log_level.upper(), logging.INFO),
        format='%(asctime)s [%(levelname)s] %(name)s: %(message)s'
    )

    handler = COMMANDS.get(args.command)
    if handler is None:
        parser.print_help()
        return

    try:
        handler(args)
    except CatalogError as e:
        logger.error(f"[CLI] {e.error_code}: {e.message}")
        sys.exit(1)
    except Exception as e:
        logger.exception(f"[CLI] Critical error: {e}")
        sys.exit(1)


if __name__ == "__main__":
    main()
