"""Periodic HTTP availability checks with webhook alerts on up/down changes."""
