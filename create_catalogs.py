#!/usr/bin/env python3
"""Create entitlement management catalogs from a spreadsheet.

Columns: DisplayName, Description. A catalog whose name already exists is
left untouched.
"""
import logging
import sys
from typing import Optional, Sequence, Tuple

import batch_runner
from graph_client import ENTITLEMENT, GraphSession
from records import CatalogRow
from reporting import CREATED, SKIPPED
from resolver import find_catalog_by_name

logger = logging.getLogger(__name__)


def ensure_catalog(session: GraphSession, row: CatalogRow) -> Tuple[str, str]:
    existing = find_catalog_by_name(session, row.display_name)
    if existing:
        logger.info(f"Catalog '{row.display_name}' already exists ({existing['id']}), skipping")
        return SKIPPED, "already exists"

    body = {"displayName": row.display_name, "description": row.description}
    session.post(f"{ENTITLEMENT}/catalogs", body)
    logger.info(f"Created catalog '{row.display_name}'")
    return CREATED, "catalog created"


def main(argv: Optional[Sequence[str]] = None) -> int:
    return batch_runner.main(
        argv,
        job="create-catalogs",
        description="Create entitlement management catalogs from a spreadsheet",
        row_type=CatalogRow,
        process=ensure_catalog,
        name_column="DisplayName",
    )


if __name__ == "__main__":
    sys.exit(main())
