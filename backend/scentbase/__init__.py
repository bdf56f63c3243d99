"""Scentbase - perfume catalog API and scraping pipeline."""
