"""Personalization and feed engine.

This module contains the bounded engagement histories, the candidate
aggregation and scoring logic behind the discovery surfaces, the per-user
feed queue, and the read-through cache shared by all of them.
"""
