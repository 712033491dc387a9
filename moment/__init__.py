"""Moment: one YouTube video for your mood and the time you have."""
