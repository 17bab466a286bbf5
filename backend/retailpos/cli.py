# Overview: Flask CLI command groups for seeding, inspection, and maintenance.

# backend/retailpos/cli.py
# Commands Legend (run from the backend directory):
# Prereqs:
# - Activate your virtualenv.
# - Set FLASK_APP to wsgi.py (PowerShell: $env:FLASK_APP="wsgi.py").
# - Use: python -m flask <group> <command> [options]
#
# The default database is in memory, so commands only see what they create
# themselves unless DATABASE_URL points at a file.
#
# Catalog:
# - python -m flask catalog seed
#   Load the demo catalog (5 categories, 14 products) and 3 customers. Idempotent by slug / SKU / name.
# - python -m flask catalog low-stock [--threshold 10]
#   List active products at or under their alert level.
#
# Documents:
# - python -m flask documents list [--type invoice] [--limit 20]
#   List recent documents, newest first.
#
# System:
# - python -m flask system reset-db --yes
#   DEV/TEST only: drop and recreate all tables (deletes all data).

import click
from flask.cli import with_appcontext

from .extensions import db
from .models import Category, Customer, Product
from .services import document_service, document_types, inventory_service


DEMO_CATEGORIES = [
    # slug, name_fr, name_nl
    ("carrelage", "Carrelage", "Tegels"),
    ("sanitaire", "Sanitaire", "Sanitair"),
    ("quincaillerie", "Quincaillerie", "IJzerwaren"),
    ("peinture", "Peinture", "Verf"),
    ("outillage", "Outillage", "Gereedschap"),
]

DEMO_PRODUCTS = [
    # sku, name, category slug, price_cents, stock_qty, unit, barcode
    ("CAR-001", "Carrelage Blanc 30x30", "carrelage", 1250, 150, "m²", "1234567890123"),
    ("CAR-002", "Carrelage Gris 60x60", "carrelage", 2500, 80, "m²", "1234567890124"),
    ("CAR-003", "Carrelage Noir 45x45", "carrelage", 1875, 120, "m²", "1234567890125"),
    ("SAN-001", "Lavabo Blanc", "sanitaire", 12500, 15, "pièce", "2234567890123"),
    ("SAN-002", "WC Suspendu", "sanitaire", 23500, 8, "pièce", "2234567890124"),
    ("SAN-003", "Robinet Mitigeur", "sanitaire", 8550, 25, "pièce", "2234567890125"),
    ("QUI-001", "Vis 4x50mm - Boîte 100", "quincaillerie", 525, 200, "boîte", "3234567890123"),
    ("QUI-002", "Cheville 8mm - Boîte 50", "quincaillerie", 375, 180, "boîte", "3234567890124"),
    ("QUI-003", "Serrure Porte", "quincaillerie", 4500, 35, "pièce", "3234567890125"),
    ("PEI-001", "Peinture Blanche 10L", "peinture", 4250, 60, "L", "4234567890123"),
    ("PEI-002", "Peinture Grise 5L", "peinture", 2800, 45, "L", "4234567890124"),
    ("OUT-001", "Marteau", "outillage", 1550, 50, "pièce", "5234567890123"),
    ("OUT-002", "Tournevis Set", "outillage", 2200, 40, "set", "5234567890124"),
    ("OUT-003", "Perceuse Sans Fil", "outillage", 12500, 12, "pièce", "5234567890125"),
]

DEMO_CUSTOMERS = [
    {
        "name": "Jean Dupont",
        "email": "jean.dupont@email.com",
        "phone": "+32 475 12 34 56",
        "address": "Rue de la Paix 123, 1000 Brussels",
        "vat_number": "BE0123456789",
        "peppol_id": "0196:BE0123456789",
    },
    {
        "name": "Marie Martin",
        "email": "marie.martin@email.com",
        "phone": "+32 475 98 76 54",
        "address": "Avenue Louise 45, 1050 Brussels",
        "vat_number": "BE0987654321",
        "peppol_id": None,
    },
    {
        "name": "Pierre Dubois",
        "email": "pierre.dubois@email.com",
        "phone": "+32 475 11 22 33",
        "address": "Chaussée de Waterloo 78, 1060 Brussels",
        "vat_number": "BE0111222333",
        "peppol_id": "0196:BE0111222333",
    },
]


def seed_demo_data() -> tuple[int, int, int]:
    """Insert the demo catalog and customers that are not there yet. Returns (categories, products, customers) added."""
    categories = {c.slug: c for c in db.session.query(Category).all()}
    added_categories = 0
    for slug, name_fr, name_nl in DEMO_CATEGORIES:
        if slug in categories:
            continue
        categories[slug] = Category(slug=slug, name_fr=name_fr, name_nl=name_nl)
        db.session.add(categories[slug])
        added_categories += 1

    existing_skus = {sku for (sku,) in db.session.query(Product.sku).all()}
    added_products = 0
    for sku, name, category_slug, price_cents, stock_qty, unit, barcode in DEMO_PRODUCTS:
        if sku in existing_skus:
            continue
        db.session.add(Product(
            sku=sku,
            name=name,
            category=categories[category_slug],
            price_cents=price_cents,
            vat_rate=21,
            stock_qty=stock_qty,
            unit=unit,
            barcode=barcode,
        ))
        added_products += 1

    existing_names = {name for (name,) in db.session.query(Customer.name).all()}
    added_customers = 0
    for data in DEMO_CUSTOMERS:
        if data["name"] in existing_names:
            continue
        db.session.add(Customer(**data))
        added_customers += 1

    db.session.commit()
    return added_categories, added_products, added_customers


# =============================================================================
# CATALOG
# =============================================================================

@click.group('catalog')
def catalog_group():
    """Catalog seeding and inspection."""


@catalog_group.command('seed')
@with_appcontext
def seed_catalog():
    """Load the demo products and customers."""
    categories, products, customers = seed_demo_data()
    click.echo(f"PASS Seeded {categories} categories, {products} products and {customers} customers")


@catalog_group.command('low-stock')
@click.option('--threshold', type=int, default=None, help='Alert level for products without min_stock')
@with_appcontext
def low_stock(threshold):
    """List active products at or under their alert level."""
    products = inventory_service.low_stock_products(threshold)
    if not products:
        click.echo("No product under its alert level.")
        return
    for p in products:
        click.echo(f"{p.sku:<10} {p.stock_qty:>6}  {p.name}")


# =============================================================================
# DOCUMENTS
# =============================================================================

@click.group('documents')
def documents_group():
    """Document inspection."""


@documents_group.command('list')
@click.option('--type', 'doc_type', type=click.Choice(document_types.DOCUMENT_TYPES), default=None)
@click.option('--limit', type=int, default=20, help='Maximum rows')
@with_appcontext
def list_documents_cli(doc_type, limit):
    """List recent documents, newest first."""
    docs = document_service.list_documents(doc_type, limit)
    if not docs:
        click.echo("No documents.")
        return
    for d in docs:
        source = f" <- {d.source_document_number}" if d.source_document_number else ""
        click.echo(
            f"{d.number:<14} {d.doc_type:<15} {d.status:<15} {d.total_cents:>10}  "
            f"{d.customer_name or '-'}{source}"
        )


# =============================================================================
# SYSTEM
# =============================================================================

@click.group('system')
def system_group():
    """System maintenance commands."""


@system_group.command('reset-db')
@click.option('--yes', is_flag=True, help='Skip confirmation')
@with_appcontext
def reset_db(yes):
    """
    DANGER: Drop all tables and recreate schema.

    This will DELETE ALL DATA!
    """
    if not yes:
        click.confirm("WARN This will DELETE ALL DATA. Are you sure?", abort=True)

    click.echo("DELETE  Dropping all tables...")
    db.drop_all()

    click.echo("BUILD  Creating all tables...")
    db.create_all()

    click.echo("PASS Database reset complete. Run 'python -m flask catalog seed' to load demo data.")


def register_commands(app):
    """Register all CLI commands with Flask app."""
    app.cli.add_command(catalog_group)
    app.cli.add_command(documents_group)
    app.cli.add_command(system_group)
