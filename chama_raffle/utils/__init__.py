"""Shared helpers: logging, Flask error handling and Redis publishing"""
