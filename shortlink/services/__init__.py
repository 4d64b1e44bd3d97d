"""
Services module for business logic separation.

This module contains service classes that encapsulate business logic
(link registry, redirect resolution, click accounting, limits, API keys,
administration), keeping it separate from API endpoints and database models.
"""
