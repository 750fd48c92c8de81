"""Volunteer slot booking and assignment engine"""
