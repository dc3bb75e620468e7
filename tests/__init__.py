"""Hobbyweather Test Suite

Test organization:
- unit/: Unit tests for individual modules
  - notifications/: store, scheduler, evaluators, dispatcher, lifecycle
  - hobbies/: hobby store and recommendation scoring
  - weather/: OpenWeather provider and response parsing
  - config/: config models and loader
- fakes.py: manual clock and collaborator doubles

Running tests:
    # All tests
    pytest

    # Specific module
    pytest tests/unit/notifications/

    # With coverage
    pytest --cov=hobbyweather --cov-report=term-missing
"""
