"""Tests for :mod:`kvsessions`."""
