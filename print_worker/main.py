"""
PrintJob Print Worker

Machine-local worker on the far side of the Redis print sink that:
1. Advertises its printers in the printer registry hash
2. Waits on the per-printer Redis queues
3. Hands each document to the system print spooler
4. Reports COMPLETED or FAILED through the PrintJob REST API

Runs as a service or console application.
"""

import json
import time
import logging
import sys
import signal
import redis
from typing import List, Optional
from backend_client import BackendClient
from printer import Printer

logger = logging.getLogger(__name__)

SAMPLE_CONFIG = {
    "backend_url": "http://localhost:8000",
    "api_key": "",
    "redis_url": "redis://localhost:6379/0",
    "queue_prefix": "print_queue",
    "registry_key": "print_printers",
    "printers": [],
    "owner_name": "print-worker",
    "poll_timeout": 30
}


def configure_logging():
    logging.basicConfig(
        level=logging.INFO,
        format='%(asctime)s - %(levelname)s - %(message)s',
        handlers=[
            logging.StreamHandler(sys.stdout),
            logging.FileHandler('print_worker.log', encoding='utf-8')
        ]
    )


def load_config(config_path: str = 'config.json') -> dict:
    """Load configuration from JSON file."""
    try:
        with open(config_path, 'r') as f:
            config = json.load(f)

        # Validate required fields
        required = ['backend_url', 'redis_url']
        for field in required:
            if field not in config:
                raise ValueError(f"Missing required config field: {field}")

        return {**SAMPLE_CONFIG, **config}

    except FileNotFoundError:
        logger.error(f"Config file {config_path} not found.")
        logger.info("Creating sample config file...")
        with open(config_path, 'w') as f:
            json.dump(SAMPLE_CONFIG, f, indent=4)
        logger.info(f"Sample config created at {config_path}. Please update it and restart.")
        sys.exit(1)

    except json.JSONDecodeError as e:
        logger.error(f"Invalid JSON in config file: {e}")
        sys.exit(1)


class PrintWorker:
    """
    Redis consumer for print jobs.

    A job that fails is reported FAILED and not retried; resubmitting is up
    to the caller.
    """

    def __init__(
        self,
        config: dict,
        backend: Optional[BackendClient] = None,
        printer: Optional[Printer] = None,
        redis_client: Optional[redis.Redis] = None
    ):
        self.config = config
        self.running = False

        self.backend = backend or BackendClient(
            backend_url=config['backend_url'],
            api_key=config.get('api_key', '')
        )
        self.printer = printer or Printer()
        self.redis = redis_client

        self.queue_prefix = config.get('queue_prefix', 'print_queue')
        self.registry_key = config.get('registry_key', 'print_printers')
        self.poll_timeout = config.get('poll_timeout', 30)
        self.printers: List[str] = list(config.get('printers') or [])

    def connect_redis(self) -> bool:
        """Connect to Redis server."""
        try:
            self.redis = redis.from_url(
                self.config['redis_url'],
                decode_responses=True,
                socket_connect_timeout=5
            )
            self.redis.ping()
            logger.info(f"Connected to Redis: {self.config['redis_url']}")
            return True

        except redis.ConnectionError as e:
            logger.error(f"Failed to connect to Redis: {e}")
            return False

    def queue_names(self) -> List[str]:
        return [f"{self.queue_prefix}:{name}" for name in self.printers]

    def advertise_printers(self):
        """Publish the printers this worker serves in the registry hash."""
        for name in self.printers:
            self.redis.hset(self.registry_key, name, json.dumps({
                "name": name,
                "display_name": name,
                "owner_name": self.config.get('owner_name', 'print-worker'),
                "status": "online",
                "connection_status": "online",
            }))

    def withdraw_printers(self):
        if self.printers:
            self.redis.hdel(self.registry_key, *self.printers)

    def start(self):
        """Start the worker main loop."""
        logger.info("=" * 60)
        logger.info("PrintJob Print Worker Starting")
        logger.info("=" * 60)

        if not self.redis and not self.connect_redis():
            logger.error("Cannot start without Redis connection")
            sys.exit(1)

        if not self.backend.test_connection():
            logger.warning("Backend connection failed - will retry during operation")

        if not self.printers:
            self.printers = self.printer.get_available_printers()
        if not self.printers:
            logger.error("No printers configured or found")
            sys.exit(1)

        logger.info(f"Serving printers: {self.printers}")
        self.advertise_printers()

        self.running = True
        logger.info(f"Listening for jobs on queues: {self.queue_names()}")
        logger.info("-" * 60)

        try:
            while self.running:
                try:
                    self.process_next_job()
                except KeyboardInterrupt:
                    logger.info("Received shutdown signal")
                    self.running = False
                except Exception as e:
                    logger.error(f"Unexpected error in main loop: {e}", exc_info=True)
                    time.sleep(5)  # Brief pause before retrying
        finally:
            try:
                self.withdraw_printers()
            except redis.RedisError as e:
                logger.warning(f"Could not withdraw printers: {e}")

        logger.info("Print worker stopped")

    def process_next_job(self):
        """
        Wait for and process the next job from any served queue.

        Uses BLPOP for efficient blocking wait.
        """
        try:
            # Returns tuple: (queue_name, value) or None on timeout
            result = self.redis.blpop(self.queue_names(), timeout=self.poll_timeout)

            if result is None:
                return

            queue, raw = result
            logger.info(f"Received job from {queue}")
            self.handle_job(raw)

        except redis.ConnectionError as e:
            logger.error(f"Redis connection lost: {e}")
            time.sleep(5)
            self.connect_redis()

    def handle_job(self, raw: str) -> Optional[str]:
        """
        Handle a single queued job payload.

        Steps:
        1. Decode the payload
        2. Check the job is still SENT (it may have been purged meanwhile)
        3. Print the file
        4. Report COMPLETED or FAILED

        Returns the reported status, or None when nothing was reported.
        """
        try:
            payload = json.loads(raw)
            job_id = payload['job_id']
        except (ValueError, KeyError, TypeError) as e:
            logger.error(f"Discarding malformed job payload {raw!r}: {e}")
            return None

        job = self.backend.get_job_details(job_id)
        if not job:
            logger.warning(f"Job {job_id} no longer exists, skipping")
            return None
        if job.get('status') != 'SENT':
            logger.warning(f"Job {job_id} is {job.get('status')}, skipping")
            return None

        logger.info(f"Processing job {job_id}: {payload.get('file_name')} -> {payload.get('printer_id')}")

        try:
            success, message = self.printer.print_file(
                file_path=payload.get('file_path', ''),
                printer_name=payload.get('printer_id', ''),
                content_type=payload.get('content_type', '')
            )
        except Exception as e:
            logger.error(f"Job {job_id} failed: {e}", exc_info=True)
            success, message = False, str(e)

        status = 'COMPLETED' if success else 'FAILED'
        self.backend.update_job_status(job_id, status, message=message)
        if success:
            logger.info(f"Job {job_id} completed successfully")
        else:
            logger.error(f"Job {job_id} failed: {message}")
        return status

    def stop(self):
        """Gracefully stop the worker."""
        logger.info("Stopping print worker...")
        self.running = False


def main():
    """Main entry point."""
    configure_logging()
    worker = None

    def signal_handler(sig, frame):
        if worker:
            worker.stop()

    signal.signal(signal.SIGINT, signal_handler)
    signal.signal(signal.SIGTERM, signal_handler)

    config = load_config(sys.argv[1] if len(sys.argv) > 1 else 'config.json')

    worker = PrintWorker(config)
    worker.start()


if __name__ == "__main__":
    main()
