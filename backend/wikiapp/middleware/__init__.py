"""
Wiki Backend: Middleware Package
================================

    request ─▶ RequestIDMiddleware ─▶ RequestLoggingMiddleware ─▶ route
                (X-Request-ID, ContextVar)  (access line after the reply)

RequestIdLogFilter (installed on the root handler by setup_logging) copies
the current request ID onto every log record.
"""
