import traceback

import click
from flask import Flask
from flask_sqlalchemy import SQLAlchemy
from sqlalchemy import text
from sqlalchemy.exc import IntegrityError, SQLAlchemyError
from werkzeug.exceptions import HTTPException

from config import config

db = SQLAlchemy()


def create_app(config_name='default'):
    """Application factory: creates and configures the Flask app."""
    app = Flask(__name__)
    app.config.from_object(config[config_name])

    # ── Logging ───────────────────────────────────────────────────
    from stockbook.utils.logging import setup_logging
    setup_logging(app)

    # ── Extensions ────────────────────────────────────────────────
    db.init_app(app)

    # ── Blueprints ────────────────────────────────────────────────
    from stockbook.documents import documents as documents_blueprint
    app.register_blueprint(documents_blueprint, url_prefix='/api')

    from stockbook.parties import parties as parties_blueprint
    app.register_blueprint(parties_blueprint, url_prefix='/api')

    from stockbook.inventory import inventory as inventory_blueprint
    app.register_blueprint(inventory_blueprint, url_prefix='/api')

    from stockbook.settings import settings as settings_blueprint
    app.register_blueprint(settings_blueprint, url_prefix='/api')

    from stockbook.dashboard import dashboard as dashboard_blueprint
    app.register_blueprint(dashboard_blueprint, url_prefix='/api')

    @app.route('/health')
    def health():
        """Liveness + database ping."""
        from stockbook.utils.responses import json_response, error_response
        try:
            db.session.execute(text('SELECT 1'))
        except SQLAlchemyError as exc:
            app.logger.error(f"Health check failed: {exc}")
            return error_response(503, 'Database unavailable')
        return json_response(200, {'status': 'ok'}, 'Service healthy')

    # ── Error Handlers ────────────────────────────────────────────
    register_error_handlers(app)

    # ── CLI Commands ──────────────────────────────────────────────
    register_commands(app)

    # ── ProxyFix (HTTPS termination at the load balancer) ─────────
    from werkzeug.middleware.proxy_fix import ProxyFix
    app.wsgi_app = ProxyFix(app.wsgi_app, x_for=1, x_proto=1, x_host=1, x_prefix=1)

    return app


def register_error_handlers(app):
    """Every error leaves as the JSON envelope; nothing propagates further."""
    from stockbook.errors import StockbookError, ConcurrencyExhausted
    from stockbook.utils.responses import error_response

    @app.errorhandler(StockbookError)
    def handle_stockbook_error(e):
        if e.status_code >= 500:
            app.logger.error(f"{type(e).__name__}: {e.message}")
        response, code = error_response(e.status_code, e.message, e.errors)
        if isinstance(e, ConcurrencyExhausted):
            response.headers['Retry-After'] = str(e.retry_after)
        return response, code

    @app.errorhandler(IntegrityError)
    def handle_integrity_error(e):
        db.session.rollback()
        app.logger.warning(f"Integrity error: {e.orig}")
        return error_response(422, 'Record already exists or violates a constraint')

    @app.errorhandler(HTTPException)
    def handle_http_error(e):
        return error_response(e.code, e.description)

    @app.errorhandler(Exception)
    def handle_unexpected(e):
        db.session.rollback()
        app.logger.exception(f"Unhandled error: {e}")
        errors = {'trace': traceback.format_exc()} if app.debug else None
        return error_response(500, 'An unexpected error occurred', errors)


def register_commands(app):
    """Register custom Flask CLI commands."""

    @app.cli.command('init-db')
    def init_db():
        """Create all database tables."""
        db.create_all()
        click.echo('✅  Database tables created.')

    @app.cli.command('show-sequences')
    def show_sequences():
        """Show the last issued and next id of every numbered series (diagnostic)."""
        from stockbook.reference import ReferenceData
        from stockbook.sequences import next_id

        reference = ReferenceData.load()
        click.echo(f'{"Series":<12} {"Prefix":<8} {"Last issued":<14} {"Next"}')
        click.echo('─' * 48)
        for series in sorted(reference.prefixes):
            allocator = reference.allocator(series)
            last = allocator.last_issued()
            upcoming = next_id(allocator.prefix, last, allocator.width)
            click.echo(f'{series:<12} {allocator.prefix:<8} {last or "-":<14} {upcoming}')

    @app.cli.command('recover-recordings')
    @click.option('--older-than', type=int, default=None,
                  help='Minutes a journal must have been idle (default JOURNAL_STALE_MINUTES).')
    def recover_recordings(older_than):
        """Compensate recordings interrupted before they committed or rolled back."""
        from stockbook.documents.recorder import recover_stale_journals

        minutes = older_than if older_than is not None else app.config['JOURNAL_STALE_MINUTES']
        outcome = recover_stale_journals(minutes)
        if not outcome['recovered'] and not outcome['failed']:
            click.echo('No interrupted recordings found.')
            return
        for journal_id in outcome['recovered']:
            click.echo(f'✅  Journal #{journal_id} rolled back.')
        for journal_id in outcome['failed']:
            click.echo(f'❌  Journal #{journal_id} could not be rolled back; see logs.')

    @app.cli.command('seed-demo')
    def seed_demo():
        """Populate database with demo parties, products and tax settings."""
        from decimal import Decimal
        from stockbook.inventory.models import Product, StockMovement, TaxSetting
        from stockbook.parties.models import Customer, Supplier
        from stockbook.reference import ReferenceData

        click.echo("🌱 Seeding demo data...")
        db.create_all()
        reference = ReferenceData.load()

        if not TaxSetting.query.first():
            db.session.add_all([
                TaxSetting(tax_id=1, name='GST 0%',  tax={'gst': 0}),
                TaxSetting(tax_id=2, name='GST 5%',  tax={'gst': 5}),
                TaxSetting(tax_id=3, name='GST 18%', tax=[{'gst': 18}, {'gst': 12}]),
            ])
            db.session.commit()
            click.echo("✅ Tax settings created.")

        def add(model, series, id_column, **fields):
            def persist(number):
                row = model(**{id_column: number}, **fields)
                db.session.add(row)
                if isinstance(row, Product) and row.opening_stock_qty:
                    db.session.add(StockMovement(product=row, old_qty=0,
                                                 new_qty=row.opening_stock_qty,
                                                 delta=row.opening_stock_qty,
                                                 reason='Opening stock'))
                db.session.commit()
                return row
            return reference.claim(series, persist)

        if Customer.query.count() == 0:
            add(Customer, 'customers', 'customer_id', customer_name='Walk-in Customer')
            add(Customer, 'customers', 'customer_id', customer_name='Asha Traders', customer_type=1,
                business_name='Asha Traders Pvt Ltd', gst_number='27AAACA1234A1Z5')
            click.echo("✅ Customers created.")

        if Supplier.query.count() == 0:
            add(Supplier, 'suppliers', 'supplier_id', business_name='Metro Wholesale', contact_person='R. Iyer')
            click.echo("✅ Suppliers created.")

        if Product.query.count() == 0:
            catalogue = [
                ('Basmati Rice 5kg', 'kg', 3, '620.00', '540.00', 40),
                ('Sunflower Oil 1L', 'ltr', 2, '185.00', '160.00', 60),
                ('Notebook A5',      'pcs', 3, '50.00',  '38.00',  100),
                ('Milk 500ml',       'pcs', 1, '28.00',  '24.00',  0),
            ]
            for name, unit, tax_id, retail, cost, stock in catalogue:
                add(Product, 'products', 'product_id', product_name=name, unit=unit, tax=tax_id,
                    mrp=Decimal(retail), retailsales_price=Decimal(retail),
                    purchasesale_price=Decimal(cost), wholesale_price=Decimal(cost),
                    opening_stock_qty=Decimal(stock), min_stock_qty=Decimal('5'))
            click.echo("✅ Products seeded.")

        click.echo("✅ Demo seed complete.")
