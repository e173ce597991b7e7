"""
Flask CLI commands.

Commands:
- flask init-db: create the tables (--reset drops them first)
- flask seed-accounts: create the cash-in-hand and bank accounts
- flask verify-stock: compare stock and balances folded from the logs
"""

import click

from stockledger import database
from stockledger.models import Product, CashAccount, Customer, Supplier, PartyType
from stockledger.services import cash_service, movement_store, party_ledger


def init_cli_commands(app):
    """Register CLI commands with Flask app."""

    @app.cli.command('init-db')
    @click.option('--reset', is_flag=True, help='Drop every table first (destroys all data).')
    def init_db_command(reset):
        """Create database tables."""
        if reset:
            click.confirm('This drops every table. Continue?', abort=True)
            database.drop_all()
            click.echo(click.style('Tables dropped.', fg='yellow'))
        database.create_all()
        click.echo(click.style('Tables created.', fg='green'))

    @app.cli.command('seed-accounts')
    @click.option('--cash-opening', default='0', help='Opening balance for cash in hand.')
    @click.option('--bank-opening', default='0', help='Opening balance for the bank account.')
    def seed_accounts(cash_opening, bank_opening):
        """Create the default cash and bank accounts."""
        session = database.get_session()
        try:
            accounts = cash_service.ensure_default_accounts(session, {
                cash_service.CASH_IN_HAND: cash_opening,
                cash_service.BANK: bank_opening,
            })
            session.commit()
        except Exception:
            session.rollback()
            raise
        for account in accounts:
            click.echo(f'   {account.code}: opening {account.opening_balance}')

    @app.cli.command('verify-stock')
    def verify_stock():
        """Print folded stock, party balances and cash balances."""
        session = database.get_session()

        click.echo(click.style('Stock', bold=True))
        products = session.query(Product).order_by(Product.id).all()
        levels = movement_store.stock_levels(session, [p.id for p in products])
        negative = 0
        for product in products:
            qty = levels.get(product.id, 0)
            color = 'red' if qty < 0 else None
            negative += qty < 0
            click.echo(click.style(f'   #{product.id} {product.name}: {qty}', fg=color))

        click.echo(click.style('Balances', bold=True))
        for customer in session.query(Customer).filter(Customer.is_walk_in == False).order_by(Customer.id):  # noqa: E712
            balance = party_ledger.running_balance(session, PartyType.CUSTOMER, customer.id)
            click.echo(f'   customer #{customer.id} {customer.name}: {balance}')
        for supplier in session.query(Supplier).order_by(Supplier.id):
            balance = party_ledger.running_balance(session, PartyType.SUPPLIER, supplier.id)
            click.echo(f'   supplier #{supplier.id} {supplier.name}: {balance}')

        click.echo(click.style('Cash', bold=True))
        for account in session.query(CashAccount).order_by(CashAccount.id):
            click.echo(f'   {account.code}: {cash_service.balance(session, account.code)}')

        if negative:
            click.echo(click.style(f'{negative} product(s) below zero', fg='red'))
