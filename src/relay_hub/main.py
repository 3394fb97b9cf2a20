"""
Device Relay Hub - FastAPI application entry point.
"""

import argparse
import logging
import sys
from contextlib import asynccontextmanager

from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware
import uvicorn

from . import __version__
from .config import get_config, set_config, HubConfig
from .hub import get_connection_manager
from .registry import get_device_registry
from .utils import get_host_ip
from .api import devices_router, health_router

LOG_FORMAT = '%(asctime)s - %(name)s - %(levelname)s - %(message)s'

# Configure logging
logging.basicConfig(
    level=logging.INFO,
    format=LOG_FORMAT,
    handlers=[
        logging.StreamHandler(sys.stdout),
    ]
)
logger = logging.getLogger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Lifespan context manager for startup and shutdown events."""
    config = get_config()
    logging.getLogger().setLevel(config.log_level.upper())

    # Add file handler if configured
    file_handler = None
    if config.log_file:
        file_handler = logging.FileHandler(config.log_file)
        file_handler.setFormatter(logging.Formatter(LOG_FORMAT))
        logging.getLogger().addHandler(file_handler)
        logger.info(f"Logging to file: {config.log_file}")

    # Startup
    host_ip = get_host_ip()
    logger.info("=" * 60)
    logger.info(f"Device Relay Hub v{__version__}")
    logger.info("=" * 60)
    logger.info(f"Host: {config.host}:{config.port}")
    logger.info(f"REST API: http://{host_ip}:{config.port}/api/devices")
    logger.info(f"WebSocket: ws://{host_ip}:{config.port}/ws")
    logger.info("=" * 60)

    # Create the shared registry and directory inside the running loop
    get_device_registry()
    get_connection_manager()

    yield

    # Shutdown
    stats = get_device_registry().get_device_stats()
    logger.info(f"Shutting down Device Relay Hub ({stats['total_devices']} devices known)")
    if file_handler:
        logging.getLogger().removeHandler(file_handler)
        file_handler.close()


# FastAPI app with lifespan
app = FastAPI(
    title="Device Relay Hub",
    description="Real-time relay between IoT devices and observer clients",
    version=__version__,
    lifespan=lifespan,
)

# CORS middleware
app.add_middleware(
    CORSMiddleware,
    allow_origins=["*"],
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)

app.include_router(devices_router)
app.include_router(health_router)


def main():
    """Run the Device Relay Hub."""
    env_config = HubConfig.from_env()

    parser = argparse.ArgumentParser(description="Device Relay Hub")
    parser.add_argument(
        "--port",
        type=int,
        default=env_config.port,
        help=f"Port to run the service on (default: {env_config.port})"
    )
    parser.add_argument(
        "--host",
        type=str,
        default=env_config.host,
        help=f"Host to bind to (default: {env_config.host})"
    )
    parser.add_argument(
        "--log-level",
        type=str,
        choices=["DEBUG", "INFO", "WARNING", "ERROR"],
        default=env_config.log_level.upper(),
        help="Logging level (default: INFO)"
    )
    parser.add_argument(
        "--log-file",
        type=str,
        default=env_config.log_file,
        help="Also write logs to this file"
    )

    args = parser.parse_args()

    # Update configuration
    config = HubConfig(
        host=args.host,
        port=args.port,
        outbound_queue_size=env_config.outbound_queue_size,
        log_level=args.log_level,
        log_file=args.log_file,
    )
    set_config(config)

    # Set log level
    logging.getLogger().setLevel(getattr(logging, args.log_level))

    logger.info(f"Starting Device Relay Hub on {args.host}:{args.port}")

    uvicorn.run(
        app,
        host=args.host,
        port=args.port,
        log_level=args.log_level.lower(),
    )


if __name__ == "__main__":
    main()
