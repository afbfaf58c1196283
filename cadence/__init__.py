"""Cadence — recurring task scheduling and execution engine."""
