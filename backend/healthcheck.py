#!/usr/bin/env python3
"""
Celery worker health check script.

Health check passes if:
1. Redis (the broker) is reachable
2. A celery worker process is running
"""
import os
import subprocess
import sys

import redis


def check_redis():
    """Check if Redis broker is reachable."""
    try:
        redis_url = os.getenv("REDIS_URL", "redis://redis:6379/0")
        client = redis.from_url(redis_url, socket_timeout=5)
        client.ping()
        return True
    except redis.RedisError as e:
        print(f"Redis check failed: {e}", file=sys.stderr)
        return False


def check_celery_process():
    """Check if a celery worker process is running."""
    try:
        result = subprocess.run(
            ["pgrep", "-f", "celery.*squadron.*worker"],
            capture_output=True,
            timeout=5
        )
        return result.returncode == 0
    except FileNotFoundError:
        # pgrep not available, skip this check
        return True


def main() -> int:
    if not check_redis():
        return 1
    if not check_celery_process():
        print("Celery process not found", file=sys.stderr)
        return 1
    return 0


if __name__ == "__main__":
    sys.exit(main())
