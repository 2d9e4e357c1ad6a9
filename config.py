import os
from decimal import Decimal
from dotenv import load_dotenv

# Load variables from .env
basedir = os.path.abspath(os.path.dirname(__file__))
load_dotenv(os.path.join(basedir, '.env'))

# Settings the withdrawal gateway cannot run without
CHAIN_SETTINGS = (
    'BSC_RPC_URL',
    'PAYMENT_CONTRACT_ADDRESS',
    'USDT_CONTRACT_ADDRESS',
    'ADMIN_FEE_WALLET',
    'GLOBAL_ADMIN_WALLET',
    'BSC_PRIVATE_KEY',
)


class Config:
    """Base settings shared by every environment"""
    SECRET_KEY = os.environ.get('SECRET_KEY') or 'hard-to-guess-fallback-key'

    # Database
    SQLALCHEMY_DATABASE_URI = os.environ.get('DATABASE_URL') or \
        'sqlite:///' + os.path.join(basedir, 'instance', 'jarvis.db')
    SQLALCHEMY_TRACK_MODIFICATIONS = False

    # BSC withdrawal gateway (no defaults: missing values must fail loudly)
    BSC_RPC_URL = os.environ.get('BSC_RPC_URL')
    PAYMENT_CONTRACT_ADDRESS = os.environ.get('PAYMENT_CONTRACT_ADDRESS')
    USDT_CONTRACT_ADDRESS = os.environ.get('USDT_CONTRACT_ADDRESS')
    ADMIN_FEE_WALLET = os.environ.get('ADMIN_FEE_WALLET')
    GLOBAL_ADMIN_WALLET = os.environ.get('GLOBAL_ADMIN_WALLET')
    BSC_PRIVATE_KEY = os.environ.get('BSC_PRIVATE_KEY')
    BSC_CHAIN_ID = int(os.environ.get('BSC_CHAIN_ID') or 56)
    BSC_TX_TIMEOUT = int(os.environ.get('BSC_TX_TIMEOUT') or 60)
    USDT_DECIMALS = int(os.environ.get('USDT_DECIMALS') or 18)

    # Shared secret for the external cron trigger
    CRON_SECRET = os.environ.get('CRON_SECRET')

    # Ledger
    WITHDRAWAL_FEE_RATE = Decimal(os.environ.get('WITHDRAWAL_FEE_RATE') or '0.10')
    PROFIT_PERIOD_GRAIN = os.environ.get('PROFIT_PERIOD_GRAIN') or 'hour'
    PROFIT_PERIODS_PER_DAY = int(os.environ.get('PROFIT_PERIODS_PER_DAY') or 24)
    PROFIT_SCHEDULER_ENABLED = os.environ.get('PROFIT_SCHEDULER_ENABLED') == 'True'

    # Mail
    MAIL_SERVER = os.environ.get('MAIL_SERVER')
    MAIL_PORT = int(os.environ.get('MAIL_PORT') or 587)
    MAIL_USE_TLS = os.environ.get('MAIL_USE_TLS') == 'True'
    MAIL_USE_SSL = os.environ.get('MAIL_USE_SSL') == 'True'
    MAIL_USERNAME = os.environ.get('MAIL_USERNAME')
    MAIL_PASSWORD = os.environ.get('MAIL_PASSWORD')
    MAIL_DEFAULT_SENDER = (
        os.environ.get('MAIL_DEFAULT_SENDER_NAME', 'Jarvis AI'),
        os.environ.get('MAIL_DEFAULT_SENDER_EMAIL', 'noreply@jarvis-ai.app')
    )

    # Fail at startup instead of at the first withdrawal
    REQUIRE_CHAIN_SETTINGS = False

class DevelopmentConfig(Config):
    DEBUG = True

class TestingConfig(Config):
    TESTING = True
    SQLALCHEMY_DATABASE_URI = 'sqlite://'
    WTF_CSRF_ENABLED = False
    MAIL_SERVER = None
    MAIL_SUPPRESS_SEND = True
    CRON_SECRET = 'test-cron-secret'
    PROFIT_SCHEDULER_ENABLED = False
    PROFIT_PERIOD_GRAIN = 'hour'
    PROFIT_PERIODS_PER_DAY = 24
    BSC_RPC_URL = None
    PAYMENT_CONTRACT_ADDRESS = None
    USDT_CONTRACT_ADDRESS = None
    ADMIN_FEE_WALLET = None
    GLOBAL_ADMIN_WALLET = None
    BSC_PRIVATE_KEY = None

class ProductionConfig(Config):
    DEBUG = False
    SESSION_COOKIE_SECURE = True
    REMEMBER_COOKIE_SECURE = True
    REQUIRE_CHAIN_SETTINGS = True

config = {
    'development': DevelopmentConfig,
    'testing': TestingConfig,
    'production': ProductionConfig,
    'default': DevelopmentConfig
}
