"""
Flask CLI commands.

Commands:
- flask init-db: Create all tables
- flask create-user: Create a staff user
- flask seed-demo: Load demo categories, products and customers
"""

import click
from orderdesk.database import create_tables, get_session
from orderdesk.exceptions import OrderDeskError
from orderdesk.models import Category, Customer
from orderdesk.services import auth_service, catalog_service, customer_service


DEMO_CATEGORIES = [
    ('Tarpaulin', 'Waterproof tarpaulin sheets'),
    ('Shade Net', 'Agricultural shade nets'),
]

DEMO_PRODUCTS = [
    {'name': 'Blue Tarpaulin 120 GSM', 'category': 'Tarpaulin', 'price_retail': '120.00',
     'price_wholesale': '95.00', 'gsm': 120, 'unit': 'meter', 'stock': 250},
    {'name': 'Heavy Tarpaulin 250 GSM', 'category': 'Tarpaulin', 'price_retail': '210.00',
     'price_wholesale': '180.00', 'gsm': 250, 'unit': 'meter', 'stock': 120},
    {'name': 'Green Shade Net 50%', 'category': 'Shade Net', 'price_retail': '60.00',
     'price_wholesale': '48.00', 'gsm': 100, 'unit': 'sq.m', 'stock': 8},
]

DEMO_CUSTOMERS = [
    {'name': 'Sharma Traders', 'email': 'sharma@example.com', 'phone': '9800000001',
     'tier': 'Wholesaler', 'city': 'Jaipur'},
    {'name': 'Green Farm Supplies', 'email': 'greenfarm@example.com', 'phone': '9800000002',
     'tier': 'Retailer', 'city': 'Pune'},
]


def init_cli_commands(app):
    """Register CLI commands with Flask app."""

    @app.cli.command('init-db')
    def init_db_command():
        """Create all database tables."""
        create_tables()
        click.echo(click.style('Tables created.', fg='green'))

    @app.cli.command('create-user')
    @click.option('--email', prompt=True, help='User email address')
    @click.option('--password', prompt=True, hide_input=True, confirmation_prompt=True, help='User password')
    @click.option('--name', 'full_name', default=None, help='Full name')
    @click.option('--role', default='Admin', show_default=True, help='Admin, Sales or InventoryManager')
    def create_user_command(email, password, full_name, role):
        """Create a staff user."""
        try:
            user = auth_service.create_user(get_session(), email, password, full_name=full_name, role=role)
        except OrderDeskError as e:
            raise click.ClickException(e.message)
        click.echo(click.style(f'User created: {user.email} (id {user.id})', fg='green'))

    @app.cli.command('seed-demo')
    def seed_demo_command():
        """Load demo data. Existing categories and customers are left alone."""
        session = get_session()
        create_tables()

        categories = {}
        for name, description in DEMO_CATEGORIES:
            category = session.query(Category).filter_by(name=name).first()
            if not category:
                category = catalog_service.create_category(session, {'name': name, 'description': description})
            categories[name] = category

        created_products = 0
        if not categories['Tarpaulin'].products:
            for data in DEMO_PRODUCTS:
                payload = dict(data, category_id=categories[data['category']].id)
                payload.pop('category')
                catalog_service.create_product(session, payload)
                created_products += 1

        created_customers = 0
        for data in DEMO_CUSTOMERS:
            if not session.query(Customer.id).filter_by(email=data['email']).first():
                customer_service.create_customer(session, data)
                created_customers += 1

        click.echo(click.style(
            f'Demo data loaded: {len(categories)} categories, '
            f'{created_products} products, {created_customers} customers',
            fg='green'
        ))
