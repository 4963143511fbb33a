#!/usr/bin/env python3
"""
Order Duplicate Guard - Main Launcher
Validates configuration, initializes logging and serves the REST API with uvicorn
"""
import sys
from pathlib import Path

# Get project root directory
PROJECT_ROOT = Path(__file__).parent
sys.path.insert(0, str(PROJECT_ROOT / 'src'))

# Fix encoding for Windows
if sys.stdout.encoding != 'utf-8':
    import io
    sys.stdout = io.TextIOWrapper(sys.stdout.buffer, encoding='utf-8', errors='replace')
    sys.stderr = io.TextIOWrapper(sys.stderr.buffer, encoding='utf-8', errors='replace')


def main():
    """Main entry point"""
    try:
        # Import after path is set
        import config
        from utils.logger import get_logger

        config.print_config_status()

        problems = config.validate_config()
        if problems:
            for problem in problems:
                print(f"[FAIL] {problem}")
            raise ValueError("Configuration is incomplete")
        print("[OK] Configuration validated")

        logger = get_logger(
            log_level=config.LOG_LEVEL,
            log_dir=config.LOG_DIR,
            max_mb=config.LOG_FILE_MAX_MB,
            backup_count=config.LOG_FILE_BACKUP_COUNT,
        )
        logger.info(f"Starting Order Duplicate Guard ({config.ORDER_SOURCE} orders)", component="Main")

        import uvicorn
        from api.main import create_app

        app = create_app()
        logger.info(
            f"REST API running on http://{config.API_HOST}:{config.API_PORT} (Swagger: /docs)",
            component="API",
        )
        uvicorn.run(app, host=config.API_HOST, port=config.API_PORT, log_level="info")

    except Exception as e:
        print(f"\n[FAIL] Failed to start server: {str(e)}")
        if 'logger' in locals():
            logger.critical(f"Server startup failed: {str(e)}", component="Main", exc_info=True)
        import traceback
        traceback.print_exc()
        sys.exit(1)


if __name__ == "__main__":
    main()
