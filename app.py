import os
import logging
import click
from logging.handlers import RotatingFileHandler
from flask import Flask, jsonify
from flask_wtf.csrf import CSRFError
from apscheduler.triggers.interval import IntervalTrigger
from sqlalchemy.exc import SQLAlchemyError
from werkzeug.middleware.proxy_fix import ProxyFix

from config import config
from extensions import db, login_manager, mail, csrf, scheduler
from exceptions import LedgerError
from chain import BSCGateway
from tasks import run_profit_distribution

from routes.auth import auth_bp
from routes.user import user_bp
from routes.withdraw import withdraw_bp
from routes.cron import cron_bp
from routes.admin import admin_bp

def create_app(config_name='default'):
    app = Flask(__name__)

    # Load Config
    app.config.from_object(config[config_name])

    # Init Extensions
    db.init_app(app)
    mail.init_app(app)
    login_manager.init_app(app)
    csrf.init_app(app)
    BSCGateway(app)

    # Register Blueprints
    app.register_blueprint(auth_bp)
    app.register_blueprint(user_bp)
    app.register_blueprint(withdraw_bp)
    app.register_blueprint(cron_bp)
    app.register_blueprint(admin_bp)

    from models import User
    @login_manager.user_loader
    def load_user(user_id):
        return db.session.get(User, int(user_id))

    @login_manager.unauthorized_handler
    def unauthorized():
        return jsonify({'error': 'Unauthorized'}), 401

    # Error Handlers
    @app.errorhandler(LedgerError)
    def ledger_error(e):
        if e.status_code >= 500:
            app.logger.error(f'{type(e).__name__}: {e.message}')
        return jsonify({'error': e.message}), e.status_code

    @app.errorhandler(SQLAlchemyError)
    def store_error(e):
        app.logger.error(f'Store Error: {e}')
        db.session.rollback()
        return jsonify({'error': 'Internal Server Error'}), 500

    @app.errorhandler(404)
    def page_not_found(e):
        return jsonify({'error': 'Not Found'}), 404

    @app.errorhandler(405)
    def method_not_allowed(e):
        return jsonify({'error': 'Method Not Allowed'}), 405

    @app.errorhandler(CSRFError)
    def handle_csrf_error(e):
        return jsonify({'error': 'Security Error: {}'.format(e.description)}), 400

    @app.errorhandler(500)
    def internal_server_error(e):
        app.logger.error('Server Error: {}'.format(e))
        return jsonify({'error': 'Internal Server Error'}), 500

    # Logging
    if not app.debug and not app.testing:
        if not os.path.exists('logs'):
            os.mkdir('logs')
        file_handler = RotatingFileHandler('logs/jarvis.log', maxBytes=10240, backupCount=10)
        file_handler.setFormatter(logging.Formatter('%(asctime)s %(levelname)s %(name)s: %(message)s'))
        file_handler.setLevel(logging.INFO)
        app.logger.addHandler(file_handler)
        for name in ('tasks', 'withdrawals', 'ledger', 'chain'):
            logging.getLogger(name).addHandler(file_handler)
            logging.getLogger(name).setLevel(logging.INFO)
        app.logger.setLevel(logging.INFO)
        app.logger.info('Jarvis ledger startup')

    # Scheduler
    if app.config['PROFIT_SCHEDULER_ENABLED'] and not scheduler.running:
        minutes = max(1, 1440 // app.config['PROFIT_PERIODS_PER_DAY'])
        scheduler.add_job(
            run_profit_distribution,
            IntervalTrigger(minutes=minutes),
            args=[app],
            id='profit_distribution',
            replace_existing=True,
            max_instances=1,
            coalesce=True
        )
        scheduler.start()
        app.logger.info(f'Profit distribution scheduled every {minutes} minutes')

    # Register CLI Commands
    @app.cli.command('distribute-profits')
    @click.option('--period-key', default=None, help='Override the period key (e.g. 2024-05-01T13).')
    def distribute_profits_command(period_key):
        """Manually trigger a profit distribution cycle."""
        click.echo("Starting profit distribution...")
        try:
            result = run_profit_distribution(app, period_key=period_key)
        except LedgerError as e:
            raise click.BadParameter(e.message, param_hint='--period-key')
        click.echo(f"Distribution {result.period_key} finished. Users updated: {result.users_updated}, "
                   f"records created: {result.records_created}, failed: {result.failed}")

    return app

# Create App instance for Gunicorn
app = create_app(os.environ.get('FLASK_CONFIG', 'development'))
app.wsgi_app = ProxyFix(app.wsgi_app, x_for=1, x_proto=1, x_host=1, x_prefix=1)

if __name__ == '__main__':
    app.run(debug=True, host='0.0.0.0', port=5000)
