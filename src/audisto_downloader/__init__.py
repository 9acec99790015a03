"""Resumable downloader for Audisto crawl pages."""
