"""
Test Suite for the Event Reviews API

Test Organization:
- conftest.py: Shared fixtures (test database, client, users, events, reviews)
- test_reviews.py: Review lifecycle endpoints
- test_votes.py / test_reports.py: Helpful votes and abuse reports
- test_moderation.py / test_moderation_queue.py: Content screening and moderators
- test_ratings.py: Event rating aggregation
- test_storage.py / test_uploads.py: Attachment storage and uploads

Running Tests:
    # Run all tests
    pytest

    # Run specific file
    pytest tests/test_reviews.py

    # Run with verbose output
    pytest -v
"""
