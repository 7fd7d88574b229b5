"""
Services Package

This package contains business logic services that are:
- Separate from HTTP handling (routers)
- Reusable across different parts of the application
- Easier to test in isolation

Current services:
- cache.py: Redis caching of event rating summaries
- moderation.py: Keyword/heuristic content screening
- notifications.py: Review notifications to organizers, moderators and authors
- rate_limiter.py: Rate limiting with slowapi and Redis backend
- ratings.py: Event rating aggregation
- realtime.py: Message publishing to WebSocket channels and Redis
- reviews.py: Review lifecycle, votes, reports and moderation
- security.py: Password hashing and JWT utilities
- storage.py: Attachment storage (local disk or S3)
- uploads.py: Ownership ledger of uploaded files
- websocket.py: WebSocket connection manager
"""
