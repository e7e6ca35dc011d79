"""
firstrun — first-run provisioning for a self-hosted web application.

Validates a submitted install payload, optionally verifies a purchase
code and fetches the licensed bundle, writes the durable .env, bootstraps
the database and creates the first administrator.
"""

__version__ = "0.1.0"
