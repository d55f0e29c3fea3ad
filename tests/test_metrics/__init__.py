"""Tests for the metrics package."""
