"""Flask CLI commands for admin operations."""
import click

DEFAULT_CATEGORIES = [
    ("Shoes", "shoes"),
    ("Clothing", "clothing"),
    ("Accessories", "accessories"),
]


def _echo_result(result, ok_message):
    if result.ok:
        click.echo(ok_message)
    else:
        raise click.ClickException(f"{result.status.value}: {result.error}")


def register_cli(app):
    @app.cli.command("init-db")
    def init_db():
        """Create all tables and seed default categories."""
        from storefront.extensions import db
        from storefront.models.category import Category

        db.create_all()
        for name, slug in DEFAULT_CATEGORIES:
            if not Category.query.filter_by(slug=slug).first():
                db.session.add(Category(name=name, slug=slug))
        db.session.commit()

        click.echo("Database initialized with default categories.")

    @app.cli.command("seed-demo")
    def seed_demo():
        """Seed demo products with size variants (idempotent)."""
        from storefront.models.category import Category
        from storefront.models.product import Product
        from storefront.services import image_service, product_service, variant_service

        if Product.query.first():
            click.echo("Products already exist — skipping demo seed.")
            return

        shoes = Category.query.filter_by(slug="shoes").first()
        clothing = Category.query.filter_by(slug="clothing").first()
        demo_products = [
            ("Trail Runner", "Northpeak", "129.90", "99.90", shoes, "Erkek", [("41", 4), ("42", 6), ("43", 2)]),
            ("City Sneaker", "Urbanstep", "89.00", None, shoes, "Kadın", [("37", 5), ("38", 3)]),
            ("Linen Shirt", "Coastline", "49.50", None, clothing, "Erkek", [("S", 8), ("M", 10), ("L", 4)]),
            ("Wool Scarf", "Coastline", "35.00", "35.00", None, "Unisex", []),
        ]
        for i, (name, brand, price, discount, category, gender, sizes) in enumerate(demo_products):
            result = product_service.create_product({
                "name": name,
                "description": f"{brand} {name}",
                "brand": brand,
                "price": price,
                "discount_price": discount,
                "stock_quantity": 0 if sizes else 15,
                "sku": f"DEMO-{i + 1:03d}",
                "category_id": category.id if category else None,
                "gender": gender,
                "has_sizes": bool(sizes),
                "is_featured": i % 2 == 0,
            })
            product = result.value
            for order, (size, stock) in enumerate(sizes):
                variant_service.upsert_variant({
                    "product_id": product.id,
                    "size": size,
                    "stock_quantity": stock,
                    "sort_order": order,
                })
            image_service.add_image(product.id, {
                "image_url": f"https://placehold.co/600x600?text=DEMO-{i + 1:03d}",
                "is_main_image": True,
            })
        click.echo(f"Seeded {len(demo_products)} demo products.")

    @app.cli.command("create-product")
    @click.option("--name", required=True)
    @click.option("--price", required=True, help="List price, e.g. 49.90")
    @click.option("--brand", default="")
    @click.option("--category-id", type=int, default=None)
    @click.option("--stock", type=int, default=0)
    @click.option("--sizes", default="", help="Comma separated size codes")
    def create_product(name, price, brand, category_id, stock, sizes):
        """Create a product directly (for testing)."""
        from storefront.services import product_service, variant_service

        size_codes = [s.strip() for s in sizes.split(",") if s.strip()]
        result = product_service.create_product({
            "name": name,
            "price": price,
            "brand": brand,
            "category_id": category_id,
            "stock_quantity": stock,
            "has_sizes": bool(size_codes),
        })
        _echo_result(result, f"Created product {getattr(result.value, 'id', '?')}: {name}")
        for order, size in enumerate(size_codes):
            variant_service.upsert_variant({
                "product_id": result.value.id,
                "size": size,
                "stock_quantity": stock,
                "sort_order": order,
            })

    @app.cli.command("low-stock")
    @click.option("--threshold", type=int, default=None)
    def low_stock(threshold):
        """List active products running low on stock."""
        from storefront.services.product_service import get_low_stock

        products = get_low_stock(threshold)
        if not products:
            click.echo("No low-stock products.")
        for p in products:
            click.echo(f"  {p.id:>5}  {p.stock_quantity:>4}  {p.name}")

    @app.cli.command("set-stock")
    @click.argument("product_id", type=int)
    @click.argument("quantity", type=int)
    def set_stock(product_id, quantity):
        """Override stock for a product without sizes."""
        from storefront.services.product_service import set_stock as _set_stock

        _echo_result(
            _set_stock(product_id, quantity),
            f"Product {product_id} stock set to {quantity}",
        )

    @app.cli.command("recompute-stock")
    @click.argument("product_id", type=int, required=False)
    def recompute_stock(product_id):
        """Recompute aggregate stock from variants (one product or all sized ones)."""
        from storefront.models.product import Product
        from storefront.services.variant_service import refresh_aggregate_stock

        if product_id is not None:
            ids = [product_id]
        else:
            ids = [pid for (pid,) in Product.query.filter_by(has_sizes=True).with_entities(Product.id)]
        for pid in ids:
            result = refresh_aggregate_stock(pid)
            _echo_result(result, f"  {pid}: {result.value}")

    @app.cli.command("stats")
    def stats():
        """Show product statistics."""
        from storefront.services.product_service import get_stats

        s = get_stats()
        click.echo(f"Total products: {sum(s.values())}")
        for status, count in sorted(s.items()):
            click.echo(f"  {status}: {count}")
