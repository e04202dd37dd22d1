import os

class BaseConfig:
    SECRET_KEY = os.getenv('SECRET_KEY', 'change-me')
    SQLALCHEMY_DATABASE_URI = os.getenv('DATABASE_URL', 'sqlite:///app.db')
    SQLALCHEMY_TRACK_MODIFICATIONS = False
    SESSION_COOKIE_SAMESITE = 'Lax'
    SESSION_COOKIE_SECURE = False
    JSON_SORT_KEYS = False

    # Identity provider; when empty the X-User-Id header is trusted
    AUTH_URL = os.getenv('AUTH_URL', '')
    AUTH_API_KEY = os.getenv('AUTH_API_KEY', '')

    # Budget builder and the tracking screens quote in different currencies
    BUDGET_CURRENCY = {
        'currency': os.getenv('BUDGET_CURRENCY', 'ARS'),
        'locale': os.getenv('BUDGET_LOCALE', 'es-AR'),
        'min_fraction_digits': 0,
        'max_fraction_digits': 0,
    }
    TRACKING_CURRENCY = {
        'currency': os.getenv('TRACKING_CURRENCY', 'EUR'),
        'locale': os.getenv('TRACKING_LOCALE', 'es-ES'),
        'min_fraction_digits': 2,
        'max_fraction_digits': 2,
    }

class DevConfig(BaseConfig):
    DEBUG = True
    ENV = 'development'

class ProdConfig(BaseConfig):
    DEBUG = False
    ENV = 'production'
    SESSION_COOKIE_SECURE = True
