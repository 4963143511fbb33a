#!/usr/bin/env python3
# -*- coding: utf-8 -*-
"""
Health Checker CLI Tool
Quick script to check a running Order Duplicate Guard server
"""
import sys
from pathlib import Path

import requests

# Fix encoding for Windows
if sys.platform == 'win32':
    import io
    sys.stdout = io.TextIOWrapper(sys.stdout.buffer, encoding='utf-8', errors='replace')
    sys.stderr = io.TextIOWrapper(sys.stderr.buffer, encoding='utf-8', errors='replace')

# Add src to path
PROJECT_ROOT = Path(__file__).parent.parent
sys.path.insert(0, str(PROJECT_ROOT / 'src'))


def _base_url():
    from config import API_PORT
    return f"http://localhost:{API_PORT}"


def check_health():
    """Check server health via HTTP endpoint"""
    url = f"{_base_url()}/health"

    print("\n" + "="*80)
    print("ORDER DUPLICATE GUARD - HEALTH CHECK")
    print("="*80 + "\n")

    try:
        response = requests.get(url, timeout=5)
        data = response.json()
    except requests.exceptions.ConnectionError:
        print("❌ Cannot connect to server")
        print(f"   Is it running? Check {url}\n")
        return False
    except requests.exceptions.Timeout:
        print("❌ Health check timed out")
        return False

    status = data.get('status', 'unknown')
    if status == 'healthy':
        print("✅ Status: HEALTHY")
    elif status == 'degraded':
        print("⚠️  Status: DEGRADED")
    else:
        print("❌ Status: UNHEALTHY")

    components = data.get('components', {})
    print(f"\n🔗 Order source: {components.get('order_source', 'unknown')}")
    print(f"   Config:       {components.get('config', 'unknown')}")

    settings = components.get('settings')
    if isinstance(settings, dict):
        print("\n⚙️  Settings:")
        for key, value in settings.items():
            print(f"   {key:<16} {value}")

    print("\n" + "="*80 + "\n")
    return status == 'healthy'


def check_shopify():
    """Check the server's connection to Shopify"""
    url = f"{_base_url()}/api/test-shopify"
    try:
        data = requests.get(url, timeout=30).json()
    except requests.exceptions.RequestException as e:
        print(f"❌ Could not reach {url}: {str(e)}\n")
        return False

    if not data.get('configured'):
        print("⚠️  Shopify credentials not configured (running on sample orders)\n")
        return False
    if data.get('success'):
        print(f"✅ {data.get('message')} ({data.get('response_time_ms', 0)} ms)\n")
        return True
    print(f"❌ Shopify connection failed: {data.get('message')}\n")
    return False


def main():
    """Main CLI entry point"""
    if len(sys.argv) > 1:
        command = sys.argv[1].lower()

        if command == 'shopify':
            sys.exit(0 if check_shopify() else 1)
        else:
            print("Usage: python check_health.py [shopify]")
            print("\nCommands:")
            print("  (none)    - Check health status")
            print("  shopify   - Test the Shopify connection")
            sys.exit(1)
    else:
        # Default: health check
        is_healthy = check_health()
        sys.exit(0 if is_healthy else 1)


if __name__ == "__main__":
    main()
