"""
Configuration module for the Order Duplicate Guard service
Environment-agnostic: Works locally, in Docker, and on Cloud Run
Loads environment variables and validates configuration
"""
import os
from pathlib import Path
from dotenv import load_dotenv

# Get project root directory (parent of src/)
PROJECT_ROOT = Path(__file__).parent.parent

# Load environment variables from .env file (if exists - local dev only)
env_file = PROJECT_ROOT / '.env'
if env_file.exists():
    load_dotenv(env_file)

# ═══════════════════════════════════════════════════════════════════
# ENVIRONMENT DETECTION
# ═══════════════════════════════════════════════════════════════════

def detect_environment() -> str:
    """
    Detect which environment we're running in

    Returns:
        'cloud_run', 'kubernetes', 'docker', or 'local'
    """
    if os.getenv('K_SERVICE'):
        return 'cloud_run'

    if os.getenv('KUBERNETES_SERVICE_HOST'):
        return 'kubernetes'

    if Path('/.dockerenv').exists():
        return 'docker'

    return 'local'

RUNTIME_ENVIRONMENT = detect_environment()

# ═══════════════════════════════════════════════════════════════════
# CONFIGURATION VALUES
# ═══════════════════════════════════════════════════════════════════

# Shopify store credentials
SHOPIFY_SHOP = os.getenv('SHOPIFY_SHOP', '')
SHOPIFY_ACCESS_TOKEN = os.getenv('SHOPIFY_ACCESS_TOKEN', '')
SHOPIFY_WEBHOOK_SECRET = os.getenv('SHOPIFY_WEBHOOK_SECRET', '')

# Order source: 'shopify' for the live store, 'mock' for the built-in sample orders
ORDER_SOURCE = os.getenv('ORDER_SOURCE', 'shopify' if SHOPIFY_SHOP else 'mock').lower()

# Monitoring Configuration
LOG_LEVEL = os.getenv('LOG_LEVEL', 'INFO')
LOG_DIR = os.getenv('LOG_DIR', str(PROJECT_ROOT / 'logs'))
LOG_FILE_MAX_MB = int(os.getenv('LOG_FILE_MAX_MB', '10'))
LOG_FILE_BACKUP_COUNT = int(os.getenv('LOG_FILE_BACKUP_COUNT', '5'))

# ═══════════════════════════════════════════════════════════════════
# REST API
# ═══════════════════════════════════════════════════════════════════

API_PORT = int(os.getenv('API_PORT', '3000'))
API_HOST = os.getenv('API_HOST', '0.0.0.0')

# Cloud Run injects PORT; it wins over API_PORT
_cloud_run_port = os.getenv('PORT')
if _cloud_run_port:
    API_PORT = int(_cloud_run_port)

API_CORS_ORIGINS = os.getenv('API_CORS_ORIGINS', '*').split(',')
API_VERSION = os.getenv('API_VERSION', '1.0.0')


def validate_config():
    """
    Validate configuration for the selected order source

    Returns:
        List of problems (empty when the configuration is usable)
    """
    errors = []

    if ORDER_SOURCE not in ('shopify', 'mock'):
        errors.append(f"ORDER_SOURCE must be 'shopify' or 'mock', got '{ORDER_SOURCE}'")

    if ORDER_SOURCE == 'shopify':
        if not SHOPIFY_SHOP:
            errors.append("SHOPIFY_SHOP is not set")
        if not SHOPIFY_ACCESS_TOKEN:
            errors.append("SHOPIFY_ACCESS_TOKEN is not set")

    if LOG_LEVEL.upper() not in ('DEBUG', 'INFO', 'WARNING', 'ERROR', 'CRITICAL'):
        errors.append(f"LOG_LEVEL '{LOG_LEVEL}' is not a valid logging level")

    return errors


def print_config_status():
    """Print configuration summary (credentials masked)"""
    print("=" * 60)
    print("Order Duplicate Guard - Configuration")
    print("=" * 60)
    print(f"  Environment:     {RUNTIME_ENVIRONMENT}")
    print(f"  Order source:    {ORDER_SOURCE}")
    print(f"  Shopify shop:    {SHOPIFY_SHOP or '[NOT SET]'}")
    print(f"  Access token:    {'[SET]' if SHOPIFY_ACCESS_TOKEN else '[NOT SET]'}")
    print(f"  Webhook secret:  {'[SET]' if SHOPIFY_WEBHOOK_SECRET else '[NOT SET]'}")
    print(f"  API:             http://{API_HOST}:{API_PORT}")
    print(f"  Log level:       {LOG_LEVEL}")
    print("=" * 60)
