# Quick reference commands (run from repo root). These are comments only; copy/paste as needed.

# Install the package with test dependencies
# python -m pip install -e ".[test]"

# Run the full test suite
# python -m pytest

# Run focused test files
# python -m pytest tests/test_blog_api.py tests/test_blog_store.py
# python -m pytest tests/test_flights.py tests/test_geocoding.py
# python -m pytest tests/test_cache_transport.py tests/test_perf_gate.py
# python -m pytest tests/test_auth_flow.py tests/test_session_and_rate_limits.py

# Start the site locally (with env vars loaded)
# python -m dotenv run -- python -m uvicorn app.api:app --reload
# python main.py

# Sample data and an admin login
# python -m scripts.seed_database --reset
# ADMIN_PASSWORD=... python -m scripts.create_admin_user you@example.com --name "Site Owner"

# Content maintenance
# python -m scripts.publish_drafts --dry-run
# python -m scripts.fix_blog_slugs --dry-run
# python -m scripts.check_flight_references
# python -m scripts.geocode_airports --dry-run --debug

# Inspect the database (example queries)
# python -m scripts.db_shell "SELECT id,email,role,active,created_at FROM users"
# python -m scripts.db_shell "SELECT id,title,status,published_at FROM blog_posts ORDER BY id DESC LIMIT 5"

# Release checks against a running server
# python -m scripts.validate_caching --base-url http://localhost:8000
# python -m scripts.performance_gate staging --run --base-url http://localhost:8000
