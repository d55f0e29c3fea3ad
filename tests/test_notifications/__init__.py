"""Tests for the notifications package."""
