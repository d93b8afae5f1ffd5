"""Headless CMS bridge service."""
