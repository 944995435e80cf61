import redis


def create_redis_client(settings) -> redis.Redis:
    # Decode responses to get strings instead of bytes.
    # Socket timeouts follow PRINT_SINK_TIMEOUT so an unreachable server fails fast.
    return redis.from_url(
        settings.REDIS_URL,
        decode_responses=True,
        socket_connect_timeout=settings.PRINT_SINK_TIMEOUT,
        socket_timeout=settings.PRINT_SINK_TIMEOUT,
    )
