# Middleware package init
"""
OurPortfolio Backend — Middleware Package
==========================================

Middleware Chain (order matters!):
    Request → [Request ID] → [Access Logging] → Route Handler

    1. Request ID: correlation ID for every log line of the request
    2. Logging: method, path, status, duration, tagged with that ID
"""
