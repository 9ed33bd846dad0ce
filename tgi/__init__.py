"""
Tondi Graph Inspector - processing tier.

Ingests blocks from a Tondi node and indexes them into PostgreSQL
for the API and web tiers.
"""

from tgi.version import VERSION

__version__ = VERSION
