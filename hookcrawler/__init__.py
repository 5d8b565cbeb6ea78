"""hookcrawler: GitHub pull-request crawler feeding an Elasticsearch index."""

__version__ = "1.0.0"
