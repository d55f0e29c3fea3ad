"""Tests for the taskmanager package."""
