"""Tests for the shapeships package."""
