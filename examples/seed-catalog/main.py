#!/usr/bin/env python3
"""Example: seed a supplier's catalog on the hosted backend.

Signs in through the session manager, creates a nested category taxonomy
and a few products with GPSR data through the REST store, then prints the
resulting category tree with product counts.

Usage:
    # Point the client at your project (or use catalog.config.yaml)
    export CATALOG_BAAS_URL=https://your-project.supabase.co
    export CATALOG_BAAS_ANON_KEY=your-anon-key

    # Run this example with an existing supplier account
    python main.py supplier@example.com 'password'
"""

import asyncio
import sys
from uuid import UUID

from api.gpsr import prepare_submission, slugify
from api.store import RestCatalogStore
from api.tree import OPTION_INDENT, build_category_tree, flatten_tree
from baas import AuthPolicy, Location, SessionManager, create_client

from data import CATEGORY_TAXONOMY, SAMPLE_PRODUCTS


async def create_taxonomy(
    store: RestCatalogStore,
    taxonomy: dict,
    parent_id: UUID | None = None,
    ids: dict[str, UUID] | None = None,
) -> dict[str, UUID]:
    """Create categories depth first; returns name -> id."""
    ids = {} if ids is None else ids
    for name, children in taxonomy.items():
        category = await store.create_category(
            {"name": name, "slug": slugify(name), "parent_id": parent_id}
        )
        ids[name] = category.id
        print(f"  + {name}")
        await create_taxonomy(store, children, category.id, ids)
    return ids


async def main(email: str, password: str) -> None:
    backend = await create_client()
    manager = SessionManager(
        backend.auth,
        policy=AuthPolicy(auto_refresh_session=True),
        location=Location(path="/login"),
    )
    await manager.initialize()

    print(f"Signing in as {email}...")
    result = await manager.sign_in(email, password)
    if result.error is not None:
        print(f"Sign in failed: {result.error.message}")
        sys.exit(1)
    print(f"Signed in (user {manager.user.id})")
    print("=" * 80)

    try:
        store = RestCatalogStore(backend, manager.user.id)

        print("Creating categories...")
        category_ids = await create_taxonomy(store, CATEGORY_TAXONOMY)

        print("\nCreating products...")
        for product in SAMPLE_PRODUCTS:
            values = {k: v for k, v in product.items() if k != "category"}
            values["category_id"] = category_ids[product["category"]]
            values["slug"] = slugify(product["name"])
            created = await store.create_product(prepare_submission(values, email))
            print(f"  + {created.name} ({created.gpsr_moderation_status.value})")

        print("\n" + "=" * 80)
        print("Category tree:")
        print("-" * 80)
        categories = await store.list_categories()
        counts = await store.count_products_by_category()
        for node in flatten_tree(build_category_tree(categories, counts)):
            print(f"{OPTION_INDENT * node.level}{node.name} ({node.product_count})")
    finally:
        await manager.sign_out()
        manager.close()
        print("\nSigned out")


if __name__ == "__main__":
    if len(sys.argv) != 3:
        print(__doc__)
        sys.exit(2)
    try:
        asyncio.run(main(sys.argv[1], sys.argv[2]))
    except KeyboardInterrupt:
        print("\nInterrupted")
        sys.exit(1)
